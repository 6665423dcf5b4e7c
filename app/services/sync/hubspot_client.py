"""
HubSpot API client
Handles token exchange, CRM search, association and batch-read calls
"""
import json
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

from app.core.exceptions import AuthError, TransientFetchError
from app.models.schemas.account import Account
from app.models.schemas.crm import CrmObject, SearchPage, SearchRequest, TokenGrant

logger = logging.getLogger(__name__)


class HubSpotClient:
    """
    HubSpot client bound to one account.

    Every request reads the account's current access token, so a refresh done
    by the TokenManager is picked up by the next call without rebuilding the
    client.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        account: Account,
        base_url: str = "https://api.hubapi.com",
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ):
        self.http_client = http_client
        self.account = account
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.account.access_token}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, body: Dict) -> Dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self.http_client.post(url, headers=self._headers(), json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"HubSpot {path} failed: {e.response.status_code} - {e.response.text[:200]}")
            raise TransientFetchError(
                f"HubSpot {path} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"HubSpot {path} transport error: {e}")
            raise TransientFetchError(f"HubSpot {path} transport error: {e}") from e
        except json.JSONDecodeError as e:
            logger.warning(f"HubSpot {path} returned invalid JSON: {e}")
            raise TransientFetchError(f"HubSpot {path} returned invalid JSON") from e

    # ============================================================================
    # OAUTH TOKEN EXCHANGE
    # ============================================================================

    async def exchange_refresh_token(self, refresh_token: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.

        Args:
            refresh_token: The account's OAuth refresh token

        Returns:
            TokenGrant with access token and lifetime in seconds

        Raises:
            AuthError: If the exchange fails for any reason
        """
        url = f"{self.base_url}/oauth/v1/token"
        form = {
            "grant_type": "refresh_token",
            "client_id": self.client_id or "",
            "client_secret": self.client_secret or "",
            "refresh_token": refresh_token,
        }

        try:
            response = await self.http_client.post(url, data=form)
            response.raise_for_status()
            return TokenGrant.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to refresh HubSpot token for hub {self.account.hub_id}: {e.response.status_code} - {e.response.text[:200]}")
            raise AuthError(f"Token exchange returned {e.response.status_code}", {"hub_id": self.account.hub_id}) from e
        except Exception as e:
            logger.error(f"Error refreshing HubSpot token for hub {self.account.hub_id}: {e}")
            raise AuthError(f"Token exchange failed: {e}", {"hub_id": self.account.hub_id}) from e

    # ============================================================================
    # CRM SEARCH
    # ============================================================================

    async def search(self, request: SearchRequest) -> SearchPage:
        """
        Run one page of a CRM search.

        Args:
            request: Page request (filters, sort, limit, after)

        Returns:
            SearchPage with results and the next `after` offset (None on last page)

        Raises:
            TransientFetchError: If the request fails
        """
        data = await self._post(f"/crm/v3/objects/{request.object_type}/search", request.to_body())
        return SearchPage.from_response(data)

    # ============================================================================
    # ASSOCIATIONS / BATCH READ
    # ============================================================================

    async def read_associations(
        self,
        from_type: str,
        to_type: str,
        ids: Iterable[str]
    ) -> List[Tuple[str, List[str]]]:
        """
        Batch-read first-hop associations.

        Returns:
            (source id, [target ids in response order]) per result
        """
        body = {"inputs": [{"id": object_id} for object_id in ids]}
        data = await self._post(f"/crm/v4/associations/{from_type}/{to_type}/batch/read", body)

        associations = []
        for result in data.get("results") or []:
            source = (result.get("from") or {}).get("id")
            if source is None:
                continue
            targets = []
            for target in result.get("to") or []:
                target_id = target.get("toObjectId", target.get("id"))
                if target_id is not None:
                    targets.append(str(target_id))
            associations.append((str(source), targets))
        return associations

    async def batch_read(
        self,
        object_type: str,
        ids: Iterable[str],
        properties: List[str]
    ) -> List[CrmObject]:
        """Batch-read objects by id, projecting `properties`."""
        body = {
            "properties": list(properties),
            "inputs": [{"id": object_id} for object_id in ids],
        }
        data = await self._post(f"/crm/v3/objects/{object_type}/batch/read", body)
        return [CrmObject.model_validate(item) for item in data.get("results") or []]


# ============================================================================
# CLIENT REGISTRY
# ============================================================================

class ClientRegistry:
    """
    Per-account HubSpot clients owned by the orchestrator.

    All clients share one httpx connection pool; each is bound to its own
    account so token state never leaks across accounts.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = "https://api.hubapi.com",
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ):
        self.http_client = http_client
        self.base_url = base_url
        self.client_id = client_id
        self.client_secret = client_secret
        self._clients: Dict[str, HubSpotClient] = {}

    def for_account(self, account: Account) -> HubSpotClient:
        client = self._clients.get(account.hub_id)
        if client is None or client.account is not account:
            client = HubSpotClient(
                self.http_client,
                account,
                base_url=self.base_url,
                client_id=self.client_id,
                client_secret=self.client_secret,
            )
            self._clients[account.hub_id] = client
        return client

    def release(self, account: Account):
        self._clients.pop(account.hub_id, None)
