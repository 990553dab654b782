"""
Run Trace Model

Captures the full lifecycle of one query run for observability.
This is a side-effect-only data structure - no business logic.

DESIGN RULES:
- Pure data container
- No dependencies on collaborators
- Immutable after creation
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RunTrace:
    """
    Immutable trace of a single query run.

    Captures:
    - Identity (request_id, query)
    - Timing (started_at, finished_at, latency_ms)
    - Outcome (final state, error)
    - Per-step summaries (id, type, tool, status, error)
    """

    request_id: str
    query: str
    state: str
    started_at: datetime
    finished_at: datetime
    steps: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def latency_ms(self) -> int:
        """Calculate latency in milliseconds."""
        delta = self.finished_at - self.started_at
        return int(delta.total_seconds() * 1000)

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging/export."""
        return {
            "request_id": self.request_id,
            "query": self.query,
            "state": self.state,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "latency_ms": self.latency_ms,
            "steps": self.steps,
            "metadata": self.metadata,
            "error": self.error,
        }
