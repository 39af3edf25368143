import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv(".env")


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "taskflow"

    jwt_secret: str = "devsecret"
    jwt_algorithm: str = "HS256"
    access_token_expire_hours: int = 24

    # Outbound mail is disabled when smtp_host is empty
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    email_from: str = "TaskFlow <no-reply@taskflow.local>"

    notification_limit: int = 50
    poll_interval_seconds: int = 5

    # Seeded on startup when both email and password are set
    admin_name: str = "Administrator"
    admin_email: str = ""
    admin_password: str = ""

    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    port: int = 8000


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        mongodb_url=os.getenv("MONGODB_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "taskflow"),
        jwt_secret=os.getenv("JWT_SECRET", "devsecret"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        access_token_expire_hours=int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", 24)),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=int(os.getenv("SMTP_PORT", 587)),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        email_from=os.getenv("EMAIL_FROM", "TaskFlow <no-reply@taskflow.local>"),
        notification_limit=int(os.getenv("NOTIFICATION_LIMIT", 50)),
        poll_interval_seconds=int(os.getenv("POLL_INTERVAL_SECONDS", 5)),
        admin_name=os.getenv("ADMIN_NAME", "Administrator"),
        admin_email=os.getenv("ADMIN_EMAIL", ""),
        admin_password=os.getenv("ADMIN_PASSWORD", ""),
        cors_origins=_split(os.getenv("CORS_ORIGINS", "*")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("PORT", 8000)),
    )
