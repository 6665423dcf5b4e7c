"""
CRM Schemas
Request/response models for the HubSpot search, association and token APIs
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def to_epoch_ms(value: datetime) -> str:
    """HubSpot filters compare date properties as epoch-millisecond strings."""
    return str(int(value.timestamp() * 1000))


# ============================================================================
# SEARCH
# ============================================================================

class Filter(BaseModel):
    property_name: str
    operator: str  # "GTE" / "LTE"
    value: str


class FilterGroup(BaseModel):
    filters: List[Filter] = Field(default_factory=list)


class Sort(BaseModel):
    property_name: str
    direction: str = "ASCENDING"


class SearchRequest(BaseModel):
    """
    One page request of a search scan.
    Built fresh for every page.
    """
    object_type: str
    properties: List[str] = Field(default_factory=list)
    sorts: List[Sort] = Field(default_factory=list)
    filter_groups: List[FilterGroup] = Field(default_factory=list)
    limit: int = 100
    after: Optional[int] = None

    @classmethod
    def for_window(
        cls,
        object_type: str,
        properties: List[str],
        modified_property: str,
        since: Optional[datetime],
        until: datetime,
        limit: int,
        after: Optional[int] = None,
    ) -> "SearchRequest":
        """
        Build a request for the closed window [since, until], sorted by the
        last-modified property ascending. Without `since` only the upper bound
        is applied (first run of an object type).
        """
        filters = []
        if since is not None:
            filters.append(Filter(property_name=modified_property, operator="GTE", value=to_epoch_ms(since)))
        filters.append(Filter(property_name=modified_property, operator="LTE", value=to_epoch_ms(until)))

        return cls(
            object_type=object_type,
            properties=list(properties),
            sorts=[Sort(property_name=modified_property, direction="ASCENDING")],
            filter_groups=[FilterGroup(filters=filters)],
            limit=limit,
            after=after,
        )

    def to_body(self) -> Dict[str, Any]:
        """JSON body for POST /crm/v3/objects/{type}/search."""
        body = {
            "filterGroups": [
                {
                    "filters": [
                        {"propertyName": f.property_name, "operator": f.operator, "value": f.value}
                        for f in group.filters
                    ]
                }
                for group in self.filter_groups
            ],
            "sorts": [{"propertyName": s.property_name, "direction": s.direction} for s in self.sorts],
            "properties": self.properties,
            "limit": self.limit,
        }
        if self.after is not None:
            body["after"] = str(self.after)
        return body


class CrmObject(BaseModel):
    """A search result or batch-read result."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    properties: Optional[Dict[str, Any]] = None


class SearchPage(BaseModel):
    results: List[CrmObject] = Field(default_factory=list)
    next_after: Optional[int] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "SearchPage":
        next_after = ((data.get("paging") or {}).get("next") or {}).get("after")
        return cls(
            results=[CrmObject.model_validate(item) for item in data.get("results") or []],
            next_after=int(next_after) if next_after not in (None, "") else None,
        )


# ============================================================================
# ASSOCIATIONS
# ============================================================================

class AssociationContext(BaseModel):
    """
    First-hop associations for one page.

    targets: source id -> target id (first listed association wins)
    target_properties: target id -> projected properties of the target
    """
    targets: Dict[str, str] = Field(default_factory=dict)
    target_properties: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def target_for(self, source_id: str) -> Optional[str]:
        return self.targets.get(source_id)

    def properties_for(self, source_id: str) -> Dict[str, Any]:
        target_id = self.targets.get(source_id)
        if target_id is None:
            return {}
        return self.target_properties.get(target_id) or {}


# ============================================================================
# OAUTH
# ============================================================================

class TokenGrant(BaseModel):
    """Response of the refresh-token exchange."""
    access_token: str = Field(validation_alias=AliasChoices("access_token", "accessToken"))
    expires_in: int = Field(validation_alias=AliasChoices("expires_in", "expiresIn"))
    refresh_token: Optional[str] = Field(default=None, validation_alias=AliasChoices("refresh_token", "refreshToken"))
