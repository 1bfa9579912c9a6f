import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx
from anyio import to_thread
from openai import AsyncOpenAI
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_chain, wait_fixed

from .classify import classify_error_text, describe_exception
from .config import settings
from .exceptions import POLICIES, ClassifiedError, ErrorCategory, RetryableError
from .logging import hash_preview, jlog
from .mailer import send_error_notification

AlertHook = Callable[[str, str, str, str], Any]
SleepFn = Callable[[float], Awaitable[Any]]

# Delay before each attempt; the first attempt goes out immediately.
RETRY_DELAYS = (0.0, 1.0, 2.0)

_pending_alerts: Set["asyncio.Task[Any]"] = set()

def _spawn_alert(recipient: str, subject: str, details: str, category: str) -> None:
    # Detached: the caller's response path never awaits delivery.
    task = asyncio.get_running_loop().create_task(
        to_thread.run_sync(send_error_notification, recipient, subject, details, category)
    )
    _pending_alerts.add(task)
    task.add_done_callback(_pending_alerts.discard)

def _make_client(api_key: str, http_client: Optional[httpx.AsyncClient]) -> AsyncOpenAI:
    # SDK retries are off; attempts are governed by RETRY_DELAYS alone.
    return AsyncOpenAI(
        api_key=api_key,
        base_url=settings.openai_base_url,
        timeout=settings.openai_timeout_s,
        max_retries=0,
        http_client=http_client,
    )

def _wait_strategy():
    return wait_chain(*[wait_fixed(d) for d in RETRY_DELAYS[1:]])

async def _attempt(client: AsyncOpenAI, prompt: str, attempt_number: int) -> str:
    messages: List[Dict[str, str]] = [{"role": "user", "content": prompt}]
    start = time.time()
    try:
        completion = await client.chat.completions.create(model=settings.openai_model, messages=messages)  # type: ignore
    except Exception as e:
        raw = describe_exception(e)
        category = classify_error_text(raw)
        jlog(
            event="llm_attempt_failed",
            severity="WARNING",
            attempt=attempt_number,
            category=category.value,
            error=raw,
        )
        if POLICIES[category].retryable:
            raise RetryableError(category, raw) from e
        raise ClassifiedError(category, raw) from e
    elapsed = time.time() - start

    if not completion.choices:
        raise ClassifiedError(ErrorCategory.NO_RESPONSE, "no response from AI")

    usage = getattr(completion, "usage", None)
    jlog(
        event="llm_ok",
        attempt=attempt_number,
        model_name=settings.openai_model,
        latency_ms=int(elapsed * 1000),
        prompt_tokens=getattr(usage, "prompt_tokens", None),
        completion_tokens=getattr(usage, "completion_tokens", None),
        total_tokens=getattr(usage, "total_tokens", None),
    )
    return completion.choices[0].message.content or ""

async def complete_chat(
    prompt: str,
    api_key: str,
    alert_recipient: Optional[str] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    alert: Optional[AlertHook] = None,
    sleep: Optional[SleepFn] = None,
) -> str:
    """
    Ask the chat-completion API for a reply to a single user prompt.

    Transient failures (rate limits, timeouts, 5xx, network, unrecognised) are
    retried following RETRY_DELAYS. Every failure surfaces as ClassifiedError;
    provider text stays in raw_message and never reaches user_message.

    When alert_recipient is set, categories with an alert subject are handed to
    `alert(recipient, subject, details, category)` without awaiting it. The HTTP
    layer passes BackgroundTasks.add_task-style hooks; the default schedules a
    detached task that sends the email from a worker thread.
    """
    if not api_key:
        raise ClassifiedError(ErrorCategory.NO_CREDENTIAL, "no api key supplied")

    def _notify(category: ErrorCategory, raw: str) -> None:
        subject = POLICIES[category].alert_subject
        if not (subject and alert_recipient):
            return
        jlog(event="alert_dispatched", category=category.value, subject=subject)
        (alert or _spawn_alert)(alert_recipient, subject, raw, category.value)

    jlog(event="llm_request", model_name=settings.openai_model, prompt=hash_preview(prompt))

    client = _make_client(api_key, http_client)
    retrying = AsyncRetrying(
        stop=stop_after_attempt(len(RETRY_DELAYS)),
        wait=_wait_strategy(),
        retry=retry_if_exception_type(RetryableError),
        reraise=True,
        sleep=sleep or asyncio.sleep,
        before_sleep=lambda rs: jlog(
            event="llm_retry",
            attempt=rs.attempt_number,
            wait_s=getattr(getattr(rs, "next_action", None), "sleep", None),
            category=rs.outcome.exception().category.value if rs.outcome and rs.outcome.failed else None,
        ),
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await _attempt(client, prompt, attempt.retry_state.attempt_number)
    except RetryableError as e:
        # Retry plan exhausted
        _notify(e.category, e.raw_message)
        raise ClassifiedError(e.category, e.raw_message) from e
    except ClassifiedError as e:
        _notify(e.category, e.raw_message)
        raise
    finally:
        if http_client is None:
            await client.close()

    raise ClassifiedError(
        ErrorCategory.UNKNOWN_ERROR,
        "retry loop exited without a result",
        user_message="Something went wrong. Please try again.",
        show_socials=False,
    )
