from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class ErrorCategory(str, Enum):
    NO_CREDENTIAL = "NO_CREDENTIAL"
    NO_RESPONSE = "NO_RESPONSE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    RATE_LIMIT = "RATE_LIMIT"
    INVALID_KEY = "INVALID_KEY"
    CONTEXT_LENGTH = "CONTEXT_LENGTH"
    CONTENT_POLICY = "CONTENT_POLICY"
    TIMEOUT = "TIMEOUT"
    SERVICE_ERROR = "SERVICE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class CategoryPolicy:
    """How the gateway treats one error category.

    user_message is the only text the end user ever sees. alert_subject is
    None for categories that never page the developer; retryable categories
    only alert once the retry plan is exhausted.
    """
    user_message: str
    show_socials: bool = False
    retryable: bool = False
    alert_subject: Optional[str] = None


POLICIES: Dict[ErrorCategory, CategoryPolicy] = {
    ErrorCategory.NO_CREDENTIAL: CategoryPolicy(
        user_message="Service configuration error. Please contact support.",
        show_socials=True,
    ),
    ErrorCategory.NO_RESPONSE: CategoryPolicy(
        user_message="No response received. Please try again.",
    ),
    ErrorCategory.QUOTA_EXCEEDED: CategoryPolicy(
        user_message="We're currently experiencing technical difficulties. Please reach out through our social channels below for immediate assistance!",
        show_socials=True,
        alert_subject="Quota/Billing Issue",
    ),
    ErrorCategory.RATE_LIMIT: CategoryPolicy(
        user_message="We're experiencing high demand right now. Our team is working on a quick fix! Meanwhile, feel free to contact us directly:",
        show_socials=True,
        retryable=True,
        alert_subject="Rate Limit Exceeded",
    ),
    ErrorCategory.INVALID_KEY: CategoryPolicy(
        user_message="The provided API key is invalid. Please check your API key and try again.",
        alert_subject="CRITICAL: Invalid API Key",
    ),
    ErrorCategory.CONTEXT_LENGTH: CategoryPolicy(
        user_message="Your message is too long. Please try a shorter message.",
    ),
    ErrorCategory.CONTENT_POLICY: CategoryPolicy(
        user_message="Your message couldn't be processed. Please rephrase and try again.",
    ),
    ErrorCategory.TIMEOUT: CategoryPolicy(
        user_message="Request took too long. Please try again.",
        retryable=True,
    ),
    ErrorCategory.SERVICE_ERROR: CategoryPolicy(
        user_message="Our AI service is temporarily down. We're fixing it! You can reach us here:",
        show_socials=True,
        retryable=True,
        alert_subject="OpenAI Service Error",
    ),
    ErrorCategory.NETWORK_ERROR: CategoryPolicy(
        user_message="Connection issue. Please check your internet and try again.",
        retryable=True,
    ),
    ErrorCategory.UNKNOWN_ERROR: CategoryPolicy(
        user_message="Something unexpected happened. Please try again or contact us below:",
        show_socials=True,
        retryable=True,
        alert_subject="Unknown Error",
    ),
}


class GatewayError(Exception):
    pass


class RetryableError(GatewayError):
    """Transient provider failure: 429, timeouts, 5xx, connection drops."""

    def __init__(self, category: ErrorCategory, raw_message: str):
        super().__init__(raw_message)
        self.category = category
        self.raw_message = raw_message


class ClassifiedError(GatewayError):
    """Terminal outcome of a chat completion. Safe to show user_message to end users."""

    def __init__(
        self,
        category: ErrorCategory,
        raw_message: str,
        user_message: Optional[str] = None,
        show_socials: Optional[bool] = None,
    ):
        super().__init__(raw_message)
        policy = POLICIES[category]
        self.category = category
        self.raw_message = raw_message
        self.user_message = user_message if user_message is not None else policy.user_message
        self.show_socials = show_socials if show_socials is not None else policy.show_socials

    @property
    def policy(self) -> CategoryPolicy:
        return POLICIES[self.category]
