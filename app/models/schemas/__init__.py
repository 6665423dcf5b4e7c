"""
Pydantic Schemas
Accounts, actions and HubSpot CRM payloads
"""

# Account schemas (tokens + watermarks)
from .account import Account

# Action schemas (queue output)
from .action import Action

# CRM schemas (search, associations, OAuth)
from .crm import (
    AssociationContext,
    CrmObject,
    Filter,
    FilterGroup,
    SearchPage,
    SearchRequest,
    Sort,
    TokenGrant,
)

__all__ = [
    # Account
    "Account",
    # Action
    "Action",
    # CRM
    "AssociationContext",
    "CrmObject",
    "Filter",
    "FilterGroup",
    "SearchPage",
    "SearchRequest",
    "Sort",
    "TokenGrant",
]
