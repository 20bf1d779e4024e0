import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker + dispatch lock) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Telnyx (SMS) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")
    SMS_SEND_TIMEOUT_SECONDS = float(os.environ.get("SMS_SEND_TIMEOUT_SECONDS", "10"))
    # 1 = no retry; only transport errors are ever retried
    SMS_SEND_ATTEMPTS = int(os.environ.get("SMS_SEND_ATTEMPTS", "1"))

    # --- Dispatch ---
    DISPATCH_INTERVAL_SECONDS = int(os.environ.get("DISPATCH_INTERVAL_SECONDS", "60"))
    DISPATCH_BATCH_SIZE = int(os.environ.get("DISPATCH_BATCH_SIZE", "100"))
    DISPATCH_CONCURRENCY = int(os.environ.get("DISPATCH_CONCURRENCY", "4"))
    DISPATCH_CLAIM_LEASE_SECONDS = int(os.environ.get("DISPATCH_CLAIM_LEASE_SECONDS", "300"))
    DISPATCH_LOCK_NAME = os.environ.get("DISPATCH_LOCK_NAME", "reminders:dispatch-tick")
    DISPATCH_LOCK_TIMEOUT_SECONDS = int(os.environ.get("DISPATCH_LOCK_TIMEOUT_SECONDS", "55"))

    # --- Phone verification ---
    VERIFICATION_CODE_TTL_MINUTES = int(os.environ.get("VERIFICATION_CODE_TTL_MINUTES", "10"))

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


settings = Settings()
