"""
Action Schemas
Normalized created/updated events handed to the ActionQueue
"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


# Record key holding the type-specific property bag
PROPERTY_KEYS = {
    "contacts": "userProperties",
    "companies": "companyProperties",
    "meetings": "meetingProperties",
}


class Action(BaseModel):
    """
    A single created/updated event for one CRM object.
    Immutable once built; ownership passes to the ActionQueue.
    """
    model_config = ConfigDict(frozen=True)

    action_name: str  # "Contact Created", "Company Updated", ...
    action_date: datetime
    object_type: str
    object_id: str
    identity: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    contact_email: Optional[str] = None
    include_in_analytics: int = 0

    @property
    def action_key(self) -> str:
        """
        Stable key (type:id:epoch_ms).

        A record re-read at a rewind boundary produces the same key, so the
        store upsert stays idempotent.
        """
        return f"{self.object_type}:{self.object_id}:{int(self.action_date.timestamp() * 1000)}"

    def to_record(self) -> Dict[str, Any]:
        """Document shape written by the persistence sink."""
        record = {
            "action_key": self.action_key,
            "actionName": self.action_name,
            "actionDate": self.action_date.isoformat(),
            "includeInAnalytics": self.include_in_analytics,
            PROPERTY_KEYS.get(self.object_type, "properties"): dict(self.properties),
        }
        if self.identity is not None:
            record["identity"] = self.identity
        if self.object_type == "meetings":
            record["contact_email"] = self.contact_email
        return record
