import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class MessagingConfig(BaseModel):
    """Gateway credentials, resolved once at process start."""

    api_key: str | None = None
    from_number: str | None = None
    messaging_profile_id: str | None = None
    public_key: str | None = None
    country_code: str = "55"

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.from_number)


class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Telnyx (WhatsApp) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_PUBLIC_KEY = os.environ.get("TELNYX_PUBLIC_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")
    TELNYX_MESSAGING_PROFILE_ID = os.environ.get("TELNYX_MESSAGING_PROFILE_ID")

    # --- Scheduling ---
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "America/Sao_Paulo")
    DEFAULT_COUNTRY_CODE = os.environ.get("DEFAULT_COUNTRY_CODE", "55")
    POSTPONE_DELAY_MINUTES = int(os.environ.get("POSTPONE_DELAY_MINUTES", "10"))
    TICK_INTERVAL_SECONDS = float(os.environ.get("TICK_INTERVAL_SECONDS", "60"))

    def messaging(self) -> MessagingConfig:
        return MessagingConfig(
            api_key=self.TELNYX_API_KEY,
            from_number=self.TELNYX_FROM_NUMBER,
            messaging_profile_id=self.TELNYX_MESSAGING_PROFILE_ID,
            public_key=self.TELNYX_PUBLIC_KEY,
            country_code=self.DEFAULT_COUNTRY_CODE,
        )


settings = Settings()
