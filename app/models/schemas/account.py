"""
Account Schemas
Per-account credential and watermark state
"""
from datetime import datetime, timezone
from typing import Dict, Optional
from pydantic import BaseModel, Field, field_validator


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are read as UTC; aware ones are kept as they are."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Account(BaseModel):
    """
    One connected HubSpot portal.

    Token fields are mutated in place by the TokenManager, watermarks by the
    scanner after a fully successful scan of an object type.
    """
    hub_id: str
    hub_domain: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: str
    token_expiry: Optional[datetime] = None  # None means "refresh before first use"
    last_pulled_dates: Dict[str, datetime] = Field(default_factory=dict)

    @field_validator("token_expiry")
    @classmethod
    def token_expiry_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @field_validator("last_pulled_dates")
    @classmethod
    def watermarks_as_utc(cls, value: Dict[str, datetime]) -> Dict[str, datetime]:
        # Rows seeded by hand or by older writers may hold offset-less timestamps
        return {name: as_utc(pulled_at) for name, pulled_at in value.items()}

    def watermark(self, object_type: str) -> Optional[datetime]:
        """Last successful pull for an object type (None on first run)."""
        return self.last_pulled_dates.get(object_type)

    def advance_watermark(self, object_type: str, pulled_at: datetime):
        self.last_pulled_dates[object_type] = pulled_at

    def token_expired(self, now: Optional[datetime] = None) -> bool:
        if not self.access_token or self.token_expiry is None:
            return True
        return (now or datetime.now(timezone.utc)) > self.token_expiry

    def to_record(self) -> Dict:
        """Row written back to the accounts table."""
        return {
            "hub_id": self.hub_id,
            "hub_domain": self.hub_domain,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_expiry": self.token_expiry.isoformat() if self.token_expiry else None,
            "last_pulled_dates": {
                name: pulled_at.isoformat() for name, pulled_at in self.last_pulled_dates.items()
            },
        }
