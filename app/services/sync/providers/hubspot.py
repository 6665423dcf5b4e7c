"""
HubSpot record normalization
Converts paged CRM objects into Actions (one transform per object type)

Every transform is pure:
    (crm_object, association_context, watermark) -> Optional[Action]
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from app.models.schemas.action import Action
from app.models.schemas.crm import AssociationContext, CrmObject

logger = logging.getLogger(__name__)

# CRM placeholder values that carry no information
DISALLOWED_VALUES = {
    "[not provided]",
    "placeholder",
    "[[unknown]]",
    "not set",
    "not provided",
    "unknown",
    "undefined",
    "n/a",
}

# Company actions are dated slightly earlier so they sort ahead of the
# contact actions that reference them
COMPANY_ACTION_OFFSET = timedelta(seconds=2)


def filter_null_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None, empty strings, CRM placeholders and unresolved !$record tokens."""
    cleaned = {}
    for key, value in values.items():
        if value is None or value == "":
            continue
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in DISALLOWED_VALUES or "!$record" in lowered:
                continue
        cleaned[key] = value
    return cleaned


def is_created(crm_object: CrmObject, watermark: Optional[datetime]) -> bool:
    """
    Created iff the object was created strictly after the previous watermark.
    Everything is "created" on the first pull of an object type.
    """
    if watermark is None:
        return True
    if crm_object.created_at is None:
        return False
    return crm_object.created_at > watermark


def _action_date(crm_object: CrmObject, created: bool) -> Optional[datetime]:
    if created:
        return crm_object.created_at or crm_object.updated_at
    return crm_object.updated_at or crm_object.created_at


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


# ============================================================================
# CONTACTS
# ============================================================================

def normalize_contact(
    contact: CrmObject,
    context: AssociationContext,
    watermark: Optional[datetime]
) -> Optional[Action]:
    """
    Normalize a HubSpot contact.

    Contacts without an email are never emitted (email is the identity).
    The first associated company supplies company_id / company_domain.
    """
    properties = contact.properties or {}
    email = properties.get("email")
    if not email:
        return None

    created = is_created(contact, watermark)
    action_date = _action_date(contact, created)
    if action_date is None:
        logger.warning(f"Contact {contact.id} has no timestamps, skipping")
        return None

    company = context.properties_for(contact.id)
    name = f"{properties.get('firstname') or ''} {properties.get('lastname') or ''}".strip()

    user_properties = {
        "company_id": context.target_for(contact.id),
        "company_domain": company.get("domain"),
        "contact_name": name,
        "contact_title": properties.get("jobtitle"),
        "contact_source": properties.get("hs_analytics_source"),
        "contact_status": properties.get("hs_lead_status"),
        "contact_score": _to_int(properties.get("hubspotscore")),
    }

    return Action(
        action_name="Contact Created" if created else "Contact Updated",
        action_date=action_date,
        object_type="contacts",
        object_id=contact.id,
        identity=email,
        properties=filter_null_values(user_properties),
    )


# ============================================================================
# COMPANIES
# ============================================================================

def normalize_company(
    company: CrmObject,
    context: AssociationContext,
    watermark: Optional[datetime]
) -> Optional[Action]:
    """Normalize a HubSpot company."""
    if not company.properties:
        return None

    created = is_created(company, watermark)
    action_date = _action_date(company, created)
    if action_date is None:
        logger.warning(f"Company {company.id} has no timestamps, skipping")
        return None

    company_properties = {
        "company_id": company.id,
        "company_name": company.properties.get("name"),
        "company_domain": company.properties.get("domain"),
        "company_industry": company.properties.get("industry"),
        "company_country": company.properties.get("country"),
        "company_status": company.properties.get("hs_lead_status"),
    }

    return Action(
        action_name="Company Created" if created else "Company Updated",
        action_date=action_date - COMPANY_ACTION_OFFSET,
        object_type="companies",
        object_id=company.id,
        properties=filter_null_values(company_properties),
    )


# ============================================================================
# MEETINGS
# ============================================================================

def normalize_meeting(
    meeting: CrmObject,
    context: AssociationContext,
    watermark: Optional[datetime]
) -> Optional[Action]:
    """
    Normalize a HubSpot meeting.

    The first associated contact's email becomes the action identity; meetings
    without a contact are still emitted with contact_email=None.
    """
    if not meeting.properties:
        return None

    created = is_created(meeting, watermark)
    action_date = _action_date(meeting, created)
    if action_date is None:
        logger.warning(f"Meeting {meeting.id} has no timestamps, skipping")
        return None

    contact_email = context.properties_for(meeting.id).get("email") or None

    meeting_properties = {
        "meeting_id": meeting.id,
        "meeting_title": meeting.properties.get("hs_meeting_title"),
        "meeting_start_time": meeting.properties.get("hs_meeting_start_time"),
        "meeting_end_time": meeting.properties.get("hs_meeting_end_time"),
        "meeting_outcome": meeting.properties.get("hs_meeting_outcome"),
        "meeting_type": meeting.properties.get("hs_activity_type"),
        "contact_id": context.target_for(meeting.id),
    }

    return Action(
        action_name="Meeting Created" if created else "Meeting Updated",
        action_date=action_date,
        object_type="meetings",
        object_id=meeting.id,
        identity=contact_email,
        properties=filter_null_values(meeting_properties),
        contact_email=contact_email,
    )
