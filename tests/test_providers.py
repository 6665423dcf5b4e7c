"""
Tests for HubSpot record normalization and the object type table.
"""
import pytest

from app.core.exceptions import UnknownObjectTypeError
from app.models.schemas.crm import AssociationContext
from app.services.sync.object_types import ObjectType, get_object_type, parse_object_types
from app.services.sync.providers.hubspot import (
    COMPANY_ACTION_OFFSET,
    filter_null_values,
    normalize_company,
    normalize_contact,
    normalize_meeting,
)
from conftest import make_object, ts

WATERMARK = ts(60)


class TestContacts:
    def test_created_after_watermark_is_created(self):
        contact = make_object("1", ts(61), ts(90), email="a@example.com")

        action = normalize_contact(contact, AssociationContext(), WATERMARK)

        assert action.action_name == "Contact Created"
        assert action.action_date == ts(61)
        assert action.identity == "a@example.com"

    def test_created_before_watermark_is_updated(self):
        contact = make_object("1", ts(10), ts(90), email="a@example.com")

        action = normalize_contact(contact, AssociationContext(), WATERMARK)

        assert action.action_name == "Contact Updated"
        assert action.action_date == ts(90)

    def test_created_exactly_at_watermark_is_updated(self):
        contact = make_object("1", WATERMARK, ts(90), email="a@example.com")

        assert normalize_contact(contact, AssociationContext(), WATERMARK).action_name == "Contact Updated"

    def test_first_pull_treats_everything_as_created(self):
        contact = make_object("1", ts(10), ts(90), email="a@example.com")

        assert normalize_contact(contact, AssociationContext(), None).action_name == "Contact Created"

    @pytest.mark.parametrize("properties", [{}, {"email": ""}, {"email": None, "firstname": "Ann"}])
    def test_contact_without_email_is_suppressed(self, properties):
        contact = make_object("1", ts(61), **properties)

        assert normalize_contact(contact, AssociationContext(), WATERMARK) is None

    def test_user_properties_use_first_company_and_drop_placeholders(self):
        contact = make_object(
            "1", ts(61),
            email="a@example.com",
            firstname="Ann",
            lastname=None,
            jobtitle="n/a",
            hubspotscore="12",
            hs_lead_status="OPEN",
            hs_analytics_source="ORGANIC_SEARCH",
        )
        context = AssociationContext(
            targets={"1": "co-9"},
            target_properties={"co-9": {"domain": "acme.example"}},
        )

        action = normalize_contact(contact, context, WATERMARK)

        assert action.properties == {
            "company_id": "co-9",
            "company_domain": "acme.example",
            "contact_name": "Ann",
            "contact_source": "ORGANIC_SEARCH",
            "contact_status": "OPEN",
            "contact_score": 12,
        }

    def test_unparseable_score_defaults_to_zero(self):
        contact = make_object("1", ts(61), email="a@example.com", hubspotscore="high")

        assert normalize_contact(contact, AssociationContext(), WATERMARK).properties["contact_score"] == 0


class TestCompanies:
    def test_company_action_is_offset_and_typed(self):
        company = make_object("5", ts(70), name="Acme", domain="acme.example", industry="SOFTWARE")

        action = normalize_company(company, AssociationContext(), WATERMARK)

        assert action.action_name == "Company Created"
        assert action.action_date == ts(70) - COMPANY_ACTION_OFFSET
        assert action.properties["company_domain"] == "acme.example"
        assert action.to_record()["companyProperties"]["company_industry"] == "SOFTWARE"

    def test_company_without_properties_is_suppressed(self):
        company = make_object("5", ts(70))

        assert normalize_company(company, AssociationContext(), WATERMARK) is None


class TestMeetings:
    def test_meeting_carries_first_contact_email(self):
        meeting = make_object("m1", ts(10), ts(80), hs_meeting_title="Kickoff")
        context = AssociationContext(
            targets={"m1": "p1"},
            target_properties={"p1": {"email": "p1@example.com"}},
        )

        action = normalize_meeting(meeting, context, WATERMARK)

        assert action.action_name == "Meeting Updated"
        assert action.contact_email == "p1@example.com"
        assert action.properties["contact_id"] == "p1"
        assert action.to_record()["contact_email"] == "p1@example.com"

    def test_meeting_without_contact_is_still_emitted(self):
        meeting = make_object("m1", ts(61), hs_meeting_title="Kickoff")

        action = normalize_meeting(meeting, AssociationContext(), WATERMARK)

        assert action.action_name == "Meeting Created"
        assert action.contact_email is None
        assert action.to_record()["contact_email"] is None


def test_filter_null_values():
    assert filter_null_values({
        "a": None,
        "b": "",
        "c": "Unknown",
        "d": "{{ !$record.name }}",
        "e": 0,
        "f": "value",
    }) == {"e": 0, "f": "value"}


def test_action_key_is_stable_for_same_id_and_time():
    contact = make_object("1", ts(61), email="a@example.com")

    first = normalize_contact(contact, AssociationContext(), WATERMARK)
    second = normalize_contact(contact, AssociationContext(), WATERMARK)

    assert first.action_key == second.action_key == f"contacts:1:{int(ts(61).timestamp() * 1000)}"


def test_object_types_reject_unknown_names():
    assert get_object_type(" Contacts ").object_type is ObjectType.CONTACTS

    with pytest.raises(UnknownObjectTypeError):
        get_object_type("deals")

    with pytest.raises(UnknownObjectTypeError):
        parse_object_types(["contacts", "tickets"])


def test_parse_object_types_keeps_order_and_drops_duplicates():
    specs = parse_object_types(["meetings", "contacts", "meetings"])

    assert [spec.object_type for spec in specs] == [ObjectType.MEETINGS, ObjectType.CONTACTS]
