"""
Token lifecycle
Keeps each account's HubSpot access token valid before CRM calls
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.models.schemas.account import Account
from app.services.sync.hubspot_client import HubSpotClient

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """
    Refresh-on-expiry for one account.

    The expiry check is the only gate: calling `ensure_valid` while the token
    is still valid never re-exchanges it. Token fields are written back onto
    the Account in place.
    """

    def __init__(self, client: HubSpotClient, clock: Callable[[], datetime] = utc_now):
        self.client = client
        self.clock = clock
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    async def ensure_valid(self, account: Account) -> str:
        """
        Return a valid access token, refreshing it first if expired.

        Raises:
            AuthError: If the refresh-token exchange fails
        """
        if not account.token_expired(self.clock()):
            return account.access_token

        async with self._lock:
            # Another scan of the same account may have refreshed meanwhile
            if not account.token_expired(self.clock()):
                return account.access_token

            grant = await self.client.exchange_refresh_token(account.refresh_token)
            issued_at = self.clock()

            if grant.access_token != account.access_token:
                account.access_token = grant.access_token
            account.token_expiry = issued_at + timedelta(seconds=grant.expires_in)
            if grant.refresh_token:
                account.refresh_token = grant.refresh_token

            self.refresh_count += 1
            logger.info(f"🔑 Access token refreshed for hub {account.hub_id} (expires {account.token_expiry.isoformat()})")
            return account.access_token
