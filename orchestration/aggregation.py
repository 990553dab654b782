"""
Result Aggregation

Merges completed step results into one structure for final synthesis.
List results are concatenated so the same logical list is not presented
as fragmented chunks.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from orchestration.completeness import analyze_data_completeness
from schemas.step import ExecutionStep, StepStatus


class AggregateEntry(BaseModel):
    """One key of the aggregated data."""
    label: str
    data_type: str
    item_count: int
    source_steps: List[str] = Field(default_factory=list)


class AggregatedResults(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)
    entries: List[AggregateEntry] = Field(default_factory=list)
    step_count: int = 0
    total_items: int = 0
    summary: str = "Aggregated 0 steps - Total items: 0"


def _summarize(step_count: int, entries: List[AggregateEntry], total_items: int) -> str:
    if not entries:
        return f"Aggregated {step_count} steps - Total items: {total_items}"
    details = ", ".join(f"{e.data_type}({e.item_count})" for e in entries)
    return f"Aggregated {step_count} steps: {details} - Total items: {total_items}"


def aggregate_results(steps: List[ExecutionStep], original_query: str = "") -> AggregatedResults:
    """
    Merge every completed step's result, keyed by `step_<n>_<type>`.

    Args:
        steps: Steps of the run, in execution order
        original_query: The user's query, used for completeness labelling

    Returns:
        AggregatedResults with merged data, per-entry counts and a summary line
    """
    data: Dict[str, Any] = {}
    sources: Dict[str, List[str]] = {}
    list_label: Optional[str] = None
    step_count = 0

    for step in steps:
        if step.status != StepStatus.COMPLETED or step.result is None:
            continue
        step_count += 1
        result = step.result

        if isinstance(result, (list, tuple)):
            if list_label is None:
                list_label = f"{step.id}_{step.type}"
                data[list_label] = list(result)
                sources[list_label] = [step.id]
            else:
                data[list_label].extend(result)
                sources[list_label].append(step.id)
            continue

        label = f"{step.id}_{step.type}"
        data[label] = result
        sources[label] = [step.id]

    entries = []
    for label, value in data.items():
        analysis = analyze_data_completeness(value, original_query)
        entries.append(AggregateEntry(
            label=label,
            data_type=analysis.data_type,
            item_count=analysis.item_count,
            source_steps=sources[label],
        ))

    total_items = sum(e.item_count for e in entries)

    return AggregatedResults(
        data=data,
        entries=entries,
        step_count=step_count,
        total_items=total_items,
        summary=_summarize(step_count, entries, total_items),
    )
