# Observability Package
from observability.trace import RunTrace
from observability.sink import TraceSink, ConsoleTraceSink, JsonTraceSink
from observability.collector import TraceCollector

__all__ = ["RunTrace", "TraceSink", "ConsoleTraceSink", "JsonTraceSink", "TraceCollector"]
