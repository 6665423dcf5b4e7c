"""
Data Source Providers
Normalization layer for HubSpot CRM objects
"""
from app.services.sync.providers.hubspot import (
    normalize_contact,
    normalize_company,
    normalize_meeting,
    filter_null_values,
)

__all__ = [
    "normalize_contact",
    "normalize_company",
    "normalize_meeting",
    "filter_null_values",
]
