# Orchestration Package
from orchestration.agent import SmartAgent
from orchestration.state import AgentRunResult, ExecutionContext, LoopSettings, RunState

__all__ = ["SmartAgent", "AgentRunResult", "ExecutionContext", "LoopSettings", "RunState"]
