"""
CRM object types
Closed set of pulled object types and their dispatch table
"""
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional

from app.core.exceptions import UnknownObjectTypeError
from app.models.schemas.action import Action
from app.models.schemas.crm import AssociationContext, CrmObject
from app.services.sync.providers.hubspot import normalize_company, normalize_contact, normalize_meeting

Transform = Callable[[CrmObject, AssociationContext, Optional[datetime]], Optional[Action]]


class ObjectType(str, Enum):
    CONTACTS = "contacts"
    COMPANIES = "companies"
    MEETINGS = "meetings"


class Association(NamedTuple):
    to_type: str
    properties: List[str]


class ObjectTypeSpec(NamedTuple):
    """Everything the scanner needs to pull one object type."""
    object_type: ObjectType
    label: str  # used in logs: "Contacts", "Companies", ...
    properties: List[str]
    modified_property: str
    transform: Transform
    association: Optional[Association] = None


OBJECT_TYPES: Dict[ObjectType, ObjectTypeSpec] = {
    ObjectType.CONTACTS: ObjectTypeSpec(
        object_type=ObjectType.CONTACTS,
        label="Contacts",
        properties=[
            "firstname",
            "lastname",
            "jobtitle",
            "email",
            "hubspotscore",
            "hs_lead_status",
            "hs_analytics_source",
            "hs_latest_source",
        ],
        # Contacts expose the legacy property name
        modified_property="lastmodifieddate",
        transform=normalize_contact,
        association=Association(to_type="companies", properties=["domain", "name"]),
    ),
    ObjectType.COMPANIES: ObjectTypeSpec(
        object_type=ObjectType.COMPANIES,
        label="Companies",
        properties=[
            "name",
            "domain",
            "country",
            "industry",
            "description",
            "annualrevenue",
            "numberofemployees",
            "hs_lead_status",
        ],
        modified_property="hs_lastmodifieddate",
        transform=normalize_company,
    ),
    ObjectType.MEETINGS: ObjectTypeSpec(
        object_type=ObjectType.MEETINGS,
        label="Meetings",
        properties=[
            "hs_meeting_title",
            "hs_meeting_start_time",
            "hs_meeting_end_time",
            "hs_meeting_outcome",
            "hs_activity_type",
            "hs_createdate",
            "hs_lastmodifieddate",
        ],
        modified_property="hs_lastmodifieddate",
        transform=normalize_meeting,
        association=Association(to_type="contacts", properties=["email"]),
    ),
}


def get_object_type(name: str) -> ObjectTypeSpec:
    """
    Look up an object type by name.

    Raises:
        UnknownObjectTypeError: For names outside contacts/companies/meetings
    """
    try:
        return OBJECT_TYPES[ObjectType(name.strip().lower())]
    except ValueError:
        raise UnknownObjectTypeError(
            f"Unknown object type '{name}'. Expected one of: {', '.join(t.value for t in ObjectType)}",
            {"object_type": name}
        )


def parse_object_types(names: List[str]) -> List[ObjectTypeSpec]:
    """Resolve configured names, rejecting unknown ones up front."""
    specs = []
    for name in names:
        spec = get_object_type(name)
        if spec not in specs:
            specs.append(spec)
    return specs
