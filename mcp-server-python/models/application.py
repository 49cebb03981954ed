"""
Application row mapping for the board tools.

The mapping itself lives in ``schemas.board.ApplicationRecord``; this module
keeps the dict-in / dict-out shortcut used by the tool handlers.
"""

from typing import Any, Dict

from schemas.board import ApplicationRecord


def to_application_schema(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map an ``applications`` row to the stable card schema.

    - ``form_answers_json`` is decoded into ``form_answers``
    - ``fully_finalized`` becomes a bool
    - internal columns (finalization claim) are dropped

    Args:
        row: Database row as dictionary

    Returns:
        JSON-serializable dictionary
    """
    return ApplicationRecord.model_validate(row).model_dump(mode="json")
