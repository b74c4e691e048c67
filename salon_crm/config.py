import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon_crm.db")

# Data store backend: "sql" (SQLAlchemy, in-process change feed) or "supabase" (hosted)
STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").lower()

# Supabase Configuration
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY")

# Tenant / actor overrides. SALON_ID skips profile/team lookup entirely.
SALON_ID = os.getenv("SALON_ID")
# Actor the SQL store acts on behalf of (there is no auth session locally)
LOCAL_ACTOR_ID = os.getenv("LOCAL_ACTOR_ID")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Salon CRM <noreply@saloncrm.app>")
SALON_DISPLAY_NAME = os.getenv("SALON_DISPLAY_NAME", "Our salon")
BOOKING_EMAIL_NOTIFICATIONS = _env_bool("BOOKING_EMAIL_NOTIFICATIONS", True)

# Realtime subscription tuning
REALTIME_MAX_RETRIES = int(os.getenv("REALTIME_MAX_RETRIES", "3"))
REALTIME_RETRY_BASE_DELAY = float(os.getenv("REALTIME_RETRY_BASE_DELAY", "2.0"))  # seconds
REALTIME_HEARTBEAT_INTERVAL = float(os.getenv("REALTIME_HEARTBEAT_INTERVAL", "30"))
REALTIME_STALE_AFTER = float(os.getenv("REALTIME_STALE_AFTER", "120"))
