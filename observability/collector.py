"""
Trace Collector

Coordinates trace creation and emission for the agent loop.

DESIGN RULES:
- Never throw exceptions
- Configurable enable/disable
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from observability.sink import ConsoleTraceSink, TraceSink
from observability.trace import RunTrace

if TYPE_CHECKING:
    from orchestration.state import AgentRunResult

logger = logging.getLogger(__name__)


class TraceCollector:
    """
    Coordinates trace lifecycle.

    Responsibilities:
    - Create traces from run results
    - Forward to configured sink
    - Handle failures gracefully (never throw)
    """

    def __init__(self, sink: Optional[TraceSink] = None, enabled: bool = True):
        self._sink = sink or ConsoleTraceSink()
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        """Enable or disable tracing at runtime."""
        self._enabled = value

    def capture(
        self,
        request_id: str,
        result: "AgentRunResult",
        started_at: datetime,
        error: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Capture and emit a trace from a run result.

        Note: This method NEVER throws. Failures are logged and ignored.
        """
        if not self._enabled:
            return

        try:
            steps = [
                {
                    "id": step.id,
                    "type": step.type,
                    "tool": step.tool,
                    "status": step.status.value,
                    "error": step.error,
                }
                for step in result.steps
            ]

            trace = RunTrace(
                request_id=request_id,
                query=result.query,
                state=result.state.value,
                started_at=started_at,
                finished_at=datetime.now(),
                steps=steps,
                metadata={
                    "successful_steps": result.successful_steps,
                    "failed_steps": result.failed_steps,
                    "consecutive_failures": result.consecutive_failures,
                    **(metadata or {}),
                },
                error=error,
            )

            self._sink.emit(trace)

        except Exception as e:
            logger.warning(f"Failed to capture trace: {e}")
