from functools import partial
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header, Request, status
from fastapi.responses import JSONResponse

from ..config import settings
from ..exceptions import ClassifiedError, ErrorCategory
from ..logging import hash_preview, jlog
from ..mailer import send_error_notification
from ..schemas import ChatRequest, ChatResponse, ErrorResponse
from ..service import complete_chat

router = APIRouter()

BEARER_PREFIX = "Bearer "

STATUS_BY_CATEGORY = {
    ErrorCategory.QUOTA_EXCEEDED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.RATE_LIMIT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.INVALID_KEY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.CONTEXT_LENGTH: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.CONTENT_POLICY: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCategory.NETWORK_ERROR: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCategory.SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
}

def status_for_category(category: ErrorCategory) -> int:
    return STATUS_BY_CATEGORY.get(category, status.HTTP_500_INTERNAL_SERVER_ERROR)

def error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))

@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={code: {"model": ErrorResponse} for code in (400, 401, 500, 502, 503, 504)},
    summary="Forward a prompt to the chat-completion API",
    status_code=status.HTTP_200_OK,
)
async def chat(
    payload: ChatRequest,
    request: Request,
    background: BackgroundTasks,
    authorization: Optional[str] = Header(default=None),
):
    if not authorization:
        return error_response(
            status.HTTP_401_UNAUTHORIZED,
            ErrorResponse(error="Missing API key. Provide it in Authorization header.", code="NO_API_KEY"),
        )
    if not authorization.startswith(BEARER_PREFIX):
        return error_response(
            status.HTTP_401_UNAUTHORIZED,
            ErrorResponse(error="Invalid Authorization header format. Use: Bearer {api_key}", code="INVALID_KEY_FORMAT"),
        )
    api_key = authorization[len(BEARER_PREFIX):].strip()
    recipient = payload.developer_email or settings.dev_alert_email

    jlog(event="chat_request", prompt=hash_preview(payload.prompt), alerts_enabled=bool(recipient))

    try:
        answer = await complete_chat(
            payload.prompt,
            api_key,
            recipient,
            http_client=getattr(request.app.state, "httpx_client", None),
            # Alerts go out after the response has been sent
            alert=partial(background.add_task, send_error_notification),
        )
    except ClassifiedError as e:
        jlog(event="chat_failed", category=e.category.value, error=e.raw_message)
        if e.category is ErrorCategory.NO_CREDENTIAL:
            return error_response(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                ErrorResponse(error=e.user_message, code="NO_API_KEY", show_socials=e.show_socials),
            )
        return error_response(
            status_for_category(e.category),
            ErrorResponse(
                error=e.user_message,
                code=e.category.value,
                user_message=e.user_message,
                show_socials=e.show_socials,
            ),
        )
    except Exception as e:
        jlog(event="chat_failed_unexpected", severity="ERROR", error=str(e))
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorResponse(error="Something went wrong. Please try again.", code="UNEXPECTED_ERROR", show_socials=True),
        )

    jlog(event="chat_ok", answer=hash_preview(answer))
    return ChatResponse(answer=answer)
