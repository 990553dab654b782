"""
Trace Sink Interface

Abstract sink for trace output.
Storage-agnostic - implementations can write to console, file, cloud, etc.

DESIGN RULES:
- Side-effect only
- Never throw exceptions
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from observability.trace import RunTrace

logger = logging.getLogger(__name__)


class TraceSink(ABC):
    """
    Abstract base for trace output destinations.
    """

    @abstractmethod
    def emit(self, trace: RunTrace) -> None:
        """
        Emit a trace to the sink.

        Must not throw - failures should be logged and ignored.
        """
        pass


class ConsoleTraceSink(TraceSink):
    """
    Default sink that prints traces to console.

    Format: structured but human-readable.
    """

    def __init__(self, verbose: bool = True):
        """
        Args:
            verbose: If True, print every step. If False, summary only.
        """
        self._verbose = verbose

    def emit(self, trace: RunTrace) -> None:
        """Print trace to console."""
        try:
            status = "✓" if trace.success else "✗"

            print(f"\n{'='*60}")
            print(f"[TRACE] {status} {trace.request_id[:8]}...")
            print(f"{'='*60}")
            print(f"  Query:    {_truncate(trace.query)}")
            print(f"  State:    {trace.state}")
            print(f"  Steps:    {len(trace.steps)}")
            print(f"  Latency:  {trace.latency_ms}ms")

            if trace.error:
                print(f"  Error:    {trace.error}")

            if self._verbose:
                for step in trace.steps:
                    tool = f" {step.get('tool')}" if step.get("tool") else ""
                    error = f" - {_truncate(step['error'])}" if step.get("error") else ""
                    print(f"    {step.get('id')}: {step.get('type')}{tool} [{step.get('status')}]{error}")

            print(f"{'='*60}\n")

        except Exception as e:
            logger.warning(f"Failed to emit trace: {e}")


class JsonTraceSink(TraceSink):
    """
    Sink that outputs traces as JSON lines.

    Useful for log aggregation systems.
    """

    def emit(self, trace: RunTrace) -> None:
        """Print trace as JSON line."""
        try:
            def serializer(obj: Any) -> str:
                if isinstance(obj, datetime):
                    return obj.isoformat()
                return str(obj)

            print(json.dumps(trace.to_dict(), default=serializer))

        except Exception as e:
            logger.warning(f"Failed to emit JSON trace: {e}")


def _truncate(value: Any, limit: int = 60) -> str:
    text = str(value)
    if len(text) > limit:
        return text[:limit - 3] + "..."
    return text
