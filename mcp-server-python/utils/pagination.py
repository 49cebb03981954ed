"""
Offset pagination helpers for Kanban column reads.
"""

from typing import Any, Dict, List


def compute_has_next_page(returned: int, limit: int) -> bool:
    """
    Whether another page may follow.

    A full page signals that more rows may exist; a short page is terminal.
    A full final page therefore reports True once and the next read
    comes back empty.
    """
    return returned == limit


def build_column_page(
    items: List[Dict[str, Any]], limit: int, offset: int, total_count: int
) -> Dict[str, Any]:
    """
    Assemble a column page response.

    Args:
        items: Records of the current page (already mapped)
        limit: The requested page size
        offset: Rows skipped before this page
        total_count: Total rows in the column

    Returns:
        Page dictionary with pagination metadata
    """
    return {
        "items": items,
        "count": len(items),
        "offset": offset,
        "limit": limit,
        "has_next_page": compute_has_next_page(len(items), limit),
        "total_count": total_count,
    }
