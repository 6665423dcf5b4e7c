"""
Action persistence helpers
Handles Supabase storage and JSONL debugging for flushed action batches
"""
import json
import logging
from typing import List, Optional

from supabase import Client

from app.core.config import settings
from app.core.exceptions import PersistenceError
from app.models.schemas.action import Action

logger = logging.getLogger(__name__)


# ============================================================================
# JSONL DEBUGGING
# ============================================================================

def append_jsonl(actions: List[Action], path: Optional[str] = None):
    """
    Append flushed actions to a JSONL file for debugging.

    Args:
        actions: Actions of one flushed batch
        path: Output file (defaults to settings.jsonl_path)
    """
    try:
        with open(path or settings.jsonl_path, "a") as f:
            for action in actions:
                f.write(json.dumps(action.to_record(), default=str) + "\n")
    except OSError as e:
        logger.error(f"Error writing to JSONL: {e}")


# ============================================================================
# SUPABASE SINK
# ============================================================================

class SupabaseActionSink:
    """
    Persistence sink ("goal") for action batches.

    Upserts on action_key so records re-read at a rewind boundary do not
    create duplicate rows.
    """

    def __init__(
        self,
        supabase: Client,
        table: str = "actions",
        save_jsonl: bool = False,
        jsonl_path: Optional[str] = None,
    ):
        self.supabase = supabase
        self.table = table
        self.save_jsonl = save_jsonl
        self.jsonl_path = jsonl_path

    async def __call__(self, actions: List[Action]):
        if not actions:
            return

        records = [action.to_record() for action in actions]

        try:
            self.supabase.table(self.table).upsert(records, on_conflict="action_key").execute()
        except Exception as e:
            raise PersistenceError(
                f"Failed to save {len(records)} actions: {e}",
                {"table": self.table, "count": len(records)}
            ) from e

        logger.info(f"[DB][Save]: {len(records)} actions saved (tail: {records[-1]['actionName']} {records[-1]['actionDate']})")

        if self.save_jsonl:
            append_jsonl(actions, self.jsonl_path)
