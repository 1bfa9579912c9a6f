"""
Keyword classification of provider error text.

Rules are evaluated top-down against the lower-cased error text and the first
match wins, so a quota message that also mentions 429 is still a quota error.
"""

from typing import Callable, List, Tuple

from .exceptions import ErrorCategory

Predicate = Callable[[str], bool]


def _any_of(*keywords: str) -> Predicate:
    return lambda text: any(k in text for k in keywords)


def _invalid_key(text: str) -> bool:
    if "unauthorized" in text or "401" in text:
        return True
    return "invalid" in text and ("api" in text or "key" in text)


RULES: List[Tuple[ErrorCategory, Predicate]] = [
    (ErrorCategory.QUOTA_EXCEEDED, _any_of("insufficient_quota", "quota", "billing")),
    (ErrorCategory.RATE_LIMIT, _any_of("429", "too many requests")),
    (ErrorCategory.INVALID_KEY, _invalid_key),
    (ErrorCategory.CONTEXT_LENGTH, _any_of("context_length", "maximum context", "tokens")),
    (ErrorCategory.CONTENT_POLICY, _any_of("content_policy", "content filter", "policy violation")),
    # "timed out" is how the openai SDK words its own request timeouts
    (ErrorCategory.TIMEOUT, _any_of("timeout", "deadline exceeded", "timed out")),
    (ErrorCategory.SERVICE_ERROR, _any_of("500", "502", "503", "server error", "service unavailable")),
    (ErrorCategory.NETWORK_ERROR, _any_of("connection", "network", "dial")),
]


def classify_error_text(raw: str) -> ErrorCategory:
    text = (raw or "").lower()
    for category, matches in RULES:
        if matches(text):
            return category
    return ErrorCategory.UNKNOWN_ERROR


def describe_exception(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
