"""
Shared configuration and helpers

Settings are read once from the environment (and an optional .env file next to
the package) into immutable values that the app hands to orchestrators,
renderers and adapters at construction time.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytz
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

DEFAULT_ALLOWED_ORIGINS = ["https://searsmelvin.co.uk", "https://www.searsmelvin.co.uk"]


# ==================== BUSINESS PROFILE ====================

# Stone colour name -> swatch colour used in the emails
STONE_COLOURS = {
    "Black Galaxy": "#1a1a1a",
    "Rustenberg Grey": "#6b6b6b",
    "Vizag Blue": "#2c3e50",
    "Indian Aurora": "#8B5A2B",
    "Emerald Pearl": "#2d4a3e",
    "Ruby Red": "#722F37",
}


class BusinessProfile(BaseModel):
    """Fixed facts about the business, shared by every document and step."""
    model_config = ConfigDict(frozen=True)

    name: str = "Sears Melvin Memorials"
    email: str = "info@searsmelvin.co.uk"
    from_email: str = "info@searsmelvin.co.uk"  # must be a verified sender
    phone: str = "01268 208 559"
    region: str = "South London & Beyond"
    task_list_id: str = "901207633256"
    stone_colours: Dict[str, str] = Field(default_factory=lambda: dict(STONE_COLOURS))
    default_stone_hex: str = "#8B7355"
    timezone: str = "Europe/London"
    currency: str = "gbp"
    invoice_due_days: int = 30
    webhook_tolerance_seconds: int = 300

    @property
    def sender(self) -> str:
        return f"{self.name} <{self.from_email}>"

    def stone_hex(self, colour: Optional[str]) -> str:
        """Display colour for a stone finish, bronze when unknown."""
        return self.stone_colours.get(colour or "", self.default_stone_hex)


# ==================== SETTINGS ====================

class Settings(BaseModel):
    """Credentials and deployment options. Every integration but email is optional."""
    model_config = ConfigDict(frozen=True)

    sendgrid_api_key: str = ""
    clickup_api_key: str = ""
    supabase_url: str = ""
    supabase_service_key: str = ""
    ghl_api_key: str = ""
    ghl_location_id: str = ""
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_publishable_key: str = ""
    google_maps_key: str = ""
    allowed_origins: Tuple[str, ...] = tuple(DEFAULT_ALLOWED_ORIGINS)
    log_level: str = "INFO"
    business: BusinessProfile = Field(default_factory=BusinessProfile)

    @property
    def email_configured(self) -> bool:
        return bool(self.sendgrid_api_key)

    @property
    def task_board_configured(self) -> bool:
        return bool(self.clickup_api_key)

    @property
    def record_store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    @property
    def crm_configured(self) -> bool:
        return bool(self.ghl_api_key and self.ghl_location_id)

    @property
    def invoicing_configured(self) -> bool:
        return bool(self.stripe_secret_key)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        origins = _split_csv(env.get("ALLOWED_ORIGINS", "")) or DEFAULT_ALLOWED_ORIGINS
        business = BusinessProfile(
            task_list_id=env.get("CLICKUP_LIST_ID") or BusinessProfile().task_list_id,
        )
        return cls(
            sendgrid_api_key=env.get("SENDGRID_API_KEY", ""),
            clickup_api_key=env.get("CLICKUP_API_KEY", ""),
            supabase_url=env.get("SUPABASE_URL", "").rstrip("/"),
            supabase_service_key=env.get("SUPABASE_SERVICE_KEY", ""),
            ghl_api_key=env.get("GHL_API_KEY", ""),
            ghl_location_id=env.get("GHL_LOCATION_ID", ""),
            stripe_secret_key=env.get("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=env.get("STRIPE_WEBHOOK_SECRET", ""),
            stripe_publishable_key=env.get("STRIPE_PUBLISHABLE_KEY", ""),
            google_maps_key=env.get("GOOGLE_MAPS_KEY", ""),
            allowed_origins=tuple(origins),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            business=business,
        )


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ==================== HELPERS ====================

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_local(moment: datetime, tz_name: str = "Europe/London") -> datetime:
    """Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(pytz.timezone(tz_name))


def format_submitted_at(moment: datetime, tz_name: str = "Europe/London") -> str:
    """Human timestamp shown in emails and tasks, e.g. "19 Oct 2026, 14:05"."""
    local = to_local(moment, tz_name)
    return f"{local.day} {local.strftime('%b %Y, %H:%M')}"
