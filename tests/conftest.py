"""
Shared fixtures: an in-memory HubSpot that honours search filters, sort
order, `after` offsets and association data.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from app.core.exceptions import TransientFetchError
from app.models.schemas.account import Account
from app.models.schemas.crm import CrmObject, SearchPage, SearchRequest, TokenGrant

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ts(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


def make_object(
    object_id,
    created: datetime,
    updated: Optional[datetime] = None,
    **properties
) -> CrmObject:
    return CrmObject(
        id=str(object_id),
        createdAt=created,
        updatedAt=updated or created,
        properties=properties,
    )


class FakeCrm:
    """Stand-in for HubSpotClient backed by in-memory records."""

    def __init__(self):
        self.objects: Dict[str, List[CrmObject]] = {}
        self.associations: Dict[tuple, Dict[str, List[str]]] = {}
        self.search_requests: List[SearchRequest] = []
        self.association_calls: List[List[str]] = []
        self.batch_read_calls: List[List[str]] = []
        self.token_exchanges = 0
        self.search_failures: Dict[str, int] = {}
        self.expires_in = 1800

    def add(self, object_type: str, *objects: CrmObject):
        self.objects.setdefault(object_type, []).extend(objects)

    def associate(self, from_type: str, to_type: str, source_id, *target_ids):
        mapping = self.associations.setdefault((from_type, to_type), {})
        mapping.setdefault(str(source_id), []).extend(str(t) for t in target_ids)

    async def exchange_refresh_token(self, refresh_token: str) -> TokenGrant:
        self.token_exchanges += 1
        return TokenGrant(access_token=f"token-{self.token_exchanges}", expires_in=self.expires_in)

    async def search(self, request: SearchRequest) -> SearchPage:
        self.search_requests.append(request)

        remaining = self.search_failures.get(request.object_type, 0)
        if remaining:
            self.search_failures[request.object_type] = remaining - 1
            raise TransientFetchError("search failed", status_code=502)

        since = until = None
        for group in request.filter_groups:
            for f in group.filters:
                value = datetime.fromtimestamp(int(f.value) / 1000, tz=timezone.utc)
                if f.operator == "GTE":
                    since = value
                elif f.operator == "LTE":
                    until = value

        matching = sorted(
            (
                o for o in self.objects.get(request.object_type, [])
                if (since is None or o.updated_at >= since) and (until is None or o.updated_at <= until)
            ),
            key=lambda o: o.updated_at,
        )

        offset = request.after or 0
        results = matching[offset:offset + request.limit]
        next_after = offset + request.limit if offset + request.limit < len(matching) else None
        return SearchPage(results=results, next_after=next_after)

    async def read_associations(self, from_type: str, to_type: str, ids):
        ids = list(ids)
        self.association_calls.append(ids)
        mapping = self.associations.get((from_type, to_type), {})
        return [(i, list(mapping[i])) for i in ids if i in mapping]

    async def batch_read(self, object_type: str, ids, properties):
        ids = list(ids)
        self.batch_read_calls.append(ids)
        by_id = {o.id: o for o in self.objects.get(object_type, [])}
        return [
            CrmObject(id=i, properties={p: (by_id[i].properties or {}).get(p) for p in properties})
            if i in by_id else CrmObject(id=i, properties={})
            for i in ids
        ]


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingSink:
    def __init__(self):
        self.batches = []

    async def __call__(self, actions):
        self.batches.append(list(actions))

    @property
    def actions(self):
        return [action for batch in self.batches for action in batch]


@pytest.fixture
def fake_crm() -> FakeCrm:
    return FakeCrm()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(ts(24 * 60))


@pytest.fixture
def account(clock) -> Account:
    return Account(
        hub_id="hub-1",
        access_token="token-0",
        refresh_token="refresh-1",
        token_expiry=clock.now + timedelta(hours=1),
        last_pulled_dates={
            "contacts": ts(60),
            "companies": ts(60),
            "meetings": ts(60),
        },
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
