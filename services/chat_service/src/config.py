from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", env_ignore_empty=True)

    # Core
    service_name: str = "chat-service"
    host: str = "0.0.0.0"
    port: int = 8080

    # Model
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    openai_timeout_s: float = 30.0

    # SMTP alerts (both spellings seen in deployed .env files are accepted)
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_user: Optional[str] = Field(default=None, validation_alias=AliasChoices("smtp_user", "smtp_from"))
    smtp_password: Optional[str] = Field(default=None, validation_alias=AliasChoices("smtp_password", "smtp_pass"))
    smtp_timeout_s: float = 10.0
    from_email: Optional[str] = None
    dev_alert_email: Optional[str] = None

settings = Settings() # type: ignore
