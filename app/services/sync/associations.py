"""
Association resolution
Batch-resolves first-hop references (contact -> company, meeting -> contact)
"""
import logging
from typing import Iterable, List

from app.models.schemas.crm import AssociationContext
from app.services.sync.hubspot_client import HubSpotClient

logger = logging.getLogger(__name__)

# HubSpot rejects batch reads with more ids than this
CRM_BATCH_LIMIT = 100


def chunked(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class AssociationResolver:
    """
    Resolves associations for one page of source objects.

    No retry of its own: callers wrap `resolve` in the CRM retry policy.
    """

    def __init__(self, client: HubSpotClient, batch_limit: int = CRM_BATCH_LIMIT):
        self.client = client
        self.batch_limit = min(batch_limit, CRM_BATCH_LIMIT)

    async def resolve(
        self,
        from_type: str,
        to_type: str,
        source_ids: Iterable[str],
        target_properties: List[str],
    ) -> AssociationContext:
        """
        Resolve source -> target ids, then the targets' projected properties.

        Args:
            from_type: Source object type (e.g. "contacts")
            to_type: Target object type (e.g. "companies")
            source_ids: Ids of the page's objects
            target_properties: Properties to read for each target

        Returns:
            AssociationContext (empty, without any call, for empty input)
        """
        ids = list(dict.fromkeys(str(source_id) for source_id in source_ids))
        context = AssociationContext()
        if not ids:
            return context

        for batch in chunked(ids, self.batch_limit):
            for source_id, targets in await self.client.read_associations(from_type, to_type, batch):
                # First listed association wins
                if targets and source_id not in context.targets:
                    context.targets[source_id] = targets[0]

        target_ids = list(dict.fromkeys(context.targets.values()))
        if not target_ids:
            return context

        for batch in chunked(target_ids, self.batch_limit):
            for target in await self.client.batch_read(to_type, batch, target_properties):
                context.target_properties[target.id] = target.properties or {}

        logger.debug(
            f"Resolved {len(context.targets)}/{len(ids)} {from_type}->{to_type} associations "
            f"({len(target_ids)} distinct targets)"
        )
        return context
