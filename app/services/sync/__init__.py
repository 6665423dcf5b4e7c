"""
CRM Sync System
Incremental HubSpot pull: token lifecycle, paginated scans, action batching
"""
from app.services.sync.hubspot_client import HubSpotClient, ClientRegistry
from app.services.sync.tokens import TokenManager
from app.services.sync.associations import AssociationResolver
from app.services.sync.action_queue import ActionQueue
from app.services.sync.database import load_accounts, save_account
from app.services.sync.persistence import SupabaseActionSink, append_jsonl

__all__ = [
    "HubSpotClient",
    "ClientRegistry",
    "TokenManager",
    "AssociationResolver",
    "ActionQueue",
    "load_accounts",
    "save_account",
    "SupabaseActionSink",
    "append_jsonl",
]
