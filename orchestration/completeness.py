"""
Data Completeness Analysis

Deterministic, non-AI inspection of a tool or knowledge result that
estimates whether it is the complete answer or a truncated page.

DESIGN RULES:
- Never throws
- Never alters control flow; the planner reads the analysis on its next call
"""

import logging
import re
from typing import Any, Dict, List, Sequence

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Keys that mark a paginated element inside a list result
LIST_PAGINATION_KEYS = {"nextPageToken", "hasMore", "startAt"}
LIST_PAGINATION_FRAGMENTS = ("page", "cursor")

# Keys that mark pagination metadata on an object result
OBJECT_PAGINATION_KEYS = {"totalCount", "totalSize", "hasMore", "nextPage", "isLastPage"}

COMPLEX_OBJECT_KEY_THRESHOLD = 10
FEW_ITEMS_THRESHOLD = 5

_ALL_PATTERN = re.compile(r"\ball\b", re.IGNORECASE)


class CompletenessAnalysis(BaseModel):
    """Estimate of whether a result is the whole answer."""
    is_complete: bool = True
    data_type: str = Field(default="unknown", description="list, object, scalar or unknown")
    item_count: int = 0
    has_pagination: bool = False
    suggestions: List[str] = Field(default_factory=list)

    def describe(self) -> str:
        """One-line summary for prompts and logs."""
        parts = [
            f"type={self.data_type}",
            f"items={self.item_count}",
            f"complete={'yes' if self.is_complete else 'no'}",
        ]
        if self.has_pagination:
            parts.append("pagination=detected")
        text = ", ".join(parts)
        if self.suggestions:
            text += " | " + "; ".join(self.suggestions)
        return text


def _is_sequence(data: Any) -> bool:
    return isinstance(data, (list, tuple))


def _has_list_pagination_key(record: Dict[str, Any]) -> bool:
    for key in record:
        if key in LIST_PAGINATION_KEYS:
            return True
        lowered = str(key).lower()
        if any(fragment in lowered for fragment in LIST_PAGINATION_FRAGMENTS):
            return True
    return False


def _analyze_sequence(items: Sequence[Any], original_query: str) -> CompletenessAnalysis:
    analysis = CompletenessAnalysis(data_type="list", item_count=len(items))

    records = [item for item in items if isinstance(item, dict)]
    if any(_has_list_pagination_key(record) for record in records):
        analysis.has_pagination = True
        analysis.suggestions.append("Pagination fields detected; more queries may be needed to fetch the remaining items")

    if _ALL_PATTERN.search(original_query or "") and len(items) <= FEW_ITEMS_THRESHOLD:
        analysis.is_complete = False
        analysis.suggestions.append(
            f"Query asked for 'all' but only {len(items)} items were returned; results may be partial"
        )

    return analysis


def _analyze_object(record: Dict[str, Any], original_query: str) -> CompletenessAnalysis:
    if len(record) == 1:
        (inner,) = record.values()
        if _is_sequence(inner):
            return _analyze_sequence(inner, original_query)

    analysis = CompletenessAnalysis(data_type="object", item_count=1)

    if len(record) > COMPLEX_OBJECT_KEY_THRESHOLD:
        analysis.suggestions.append("Complex object, may contain nested data")

    pagination_keys = OBJECT_PAGINATION_KEYS.intersection(record.keys())
    if pagination_keys:
        analysis.has_pagination = True
        more_available = (
            record.get("hasMore") is True
            or record.get("isLastPage") is False
            or bool(record.get("nextPage"))
        )
        if more_available:
            analysis.is_complete = False
            analysis.suggestions.append("Result reports more pages; fetch the next page before answering")
        else:
            analysis.suggestions.append(
                f"Pagination metadata present ({', '.join(sorted(pagination_keys))})"
            )

    return analysis


def analyze_data_completeness(data: Any, original_query: str) -> CompletenessAnalysis:
    """
    Estimate whether `data` is the complete answer to `original_query`.

    Rules, in order:
    1. Sequences: count items, flag pagination fields on keyed records.
    2. Sequences of 5 or fewer items for a query containing "all" are partial.
    3. Objects: unwrap a single list-valued key, flag complex objects and
       pagination metadata.
    4. Anything else is one complete item.
    """
    try:
        if _is_sequence(data):
            return _analyze_sequence(data, original_query)
        if isinstance(data, dict):
            return _analyze_object(data, original_query)
        return CompletenessAnalysis(data_type="scalar", item_count=1)
    except Exception as e:
        logger.warning(f"Completeness analysis failed: {e}")
        return CompletenessAnalysis(
            is_complete=True,
            data_type="unknown",
            item_count=0,
            suggestions=["Unknown, error analyzing data completeness"],
        )
