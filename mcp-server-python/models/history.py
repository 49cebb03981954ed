"""History ledger row mapping."""

from typing import Any, Dict

from schemas.history import HistoryEntryRecord


def to_history_entry_schema(row: Dict[str, Any]) -> Dict[str, Any]:
    """Map a ``history_entries`` row to the stable ledger entry schema."""
    return HistoryEntryRecord.model_validate(row).model_dump(mode="json")
