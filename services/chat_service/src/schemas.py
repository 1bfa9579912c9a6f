from pydantic import BaseModel, Field, field_validator
from typing import Optional

class ChatRequest(BaseModel):
    prompt: str = Field(..., description="End-user message forwarded to the model")
    developer_email: Optional[str] = Field(default=None, description="Where to send failure alerts for this widget")

    @field_validator("developer_email")
    @classmethod
    def single_header_line(cls, v: Optional[str]) -> Optional[str]:
        # Ends up in the alert's To: header
        if v is not None and ("\r" in v or "\n" in v):
            raise ValueError("developer_email must not contain line breaks")
        return v

class ChatResponse(BaseModel):
    answer: str = Field(..., description="First completion choice, verbatim")

class ErrorResponse(BaseModel):
    error: str
    code: str
    user_message: Optional[str] = None
    show_socials: bool = False
