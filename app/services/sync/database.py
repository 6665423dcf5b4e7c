"""
Database helper functions for the CRM sync
Handles account loading and token/watermark persistence
"""
import logging
from typing import List

from supabase import Client

from app.core.config import settings
from app.models.schemas.account import Account

logger = logging.getLogger(__name__)


# ============================================================================
# ACCOUNT MANAGEMENT
# ============================================================================

async def load_accounts(supabase: Client, table: str = None) -> List[Account]:
    """
    Load every connected HubSpot account.

    Rows that fail validation are logged and skipped so one broken account
    does not block the run.

    Args:
        supabase: Supabase client
        table: Accounts table (defaults to settings.accounts_table)

    Returns:
        List of Account models
    """
    table = table or settings.accounts_table
    result = supabase.table(table).select("*").execute()

    accounts = []
    for row in result.data or []:
        try:
            accounts.append(Account.model_validate({
                **row,
                "last_pulled_dates": row.get("last_pulled_dates") or {},
            }))
        except Exception as e:
            logger.error(f"❌ Skipping invalid account row {row.get('hub_id')}: {e}")

    logger.info(f"Loaded {len(accounts)} HubSpot account(s) from {table}")
    return accounts


async def save_account(supabase: Client, account: Account, table: str = None):
    """
    Save token fields and watermarks of an account.

    Args:
        supabase: Supabase client
        account: Account to persist (upsert on hub_id)
        table: Accounts table (defaults to settings.accounts_table)
    """
    table = table or settings.accounts_table
    try:
        supabase.table(table).upsert(account.to_record(), on_conflict="hub_id").execute()
        logger.debug(f"Saved account {account.hub_id}")
    except Exception as e:
        logger.error(f"❌ Failed to save account {account.hub_id}: {e}")
        raise
