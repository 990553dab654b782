"""
Smart Agent

The iterative agent loop: decide -> execute -> validate -> accumulate ->
check completion, then synthesize one answer from everything gathered.

FLOW:
    Query -> [next_state -> planner decision -> guards -> execute step] * N
          -> aggregate -> final synthesis -> answer

GUARANTEES:
- Strictly sequential: one step at a time, each awaited before the next decision
- At most `max_steps` steps per run
- A decision identical to one already attempted is never executed
- process_query always returns a string; nothing propagates past it
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from knowledge.client import KnowledgeClient, KnowledgeRetrievalError
from llm.base import InferenceClient, InferenceOptions
from mcp_client.manager import MultiProviderManager
from observability.collector import TraceCollector
from orchestration.aggregation import aggregate_results
from orchestration.completeness import analyze_data_completeness
from orchestration.decision_parser import parse_step_decision
from orchestration.prompts import PromptLibrary
from orchestration.state import (
    AgentRunResult,
    ExecutionContext,
    LoopSettings,
    RunState,
    next_state,
)
from schemas.step import ExecutionStep, StepDecision, StepType

logger = logging.getLogger(__name__)


class UnknownStepTypeError(Exception):
    """Raised when the planner asks for a step type the agent cannot run."""


PLANNER_FAILURE_REASONING = "Failed to decide next step, providing final response"


class SmartAgent:
    """
    Bounded planner/executor for read-mostly exploratory queries.

    Collaborators are injected so the loop can run against fakes:
    - inference: planning, reasoning and synthesis
    - tools: tool registry across providers
    - knowledge: optional document retrieval
    """

    # Deterministic planning, natural-sounding synthesis
    PLANNING_OPTIONS = InferenceOptions(temperature=0.1, max_output_tokens=1000, top_p=0.8, top_k=10)
    REASONING_OPTIONS = InferenceOptions(temperature=0.3, max_output_tokens=1000, top_p=0.9)
    SYNTHESIS_OPTIONS = InferenceOptions(temperature=0.7, max_output_tokens=2000, top_p=0.9)

    def __init__(
        self,
        inference: InferenceClient,
        tools: MultiProviderManager,
        knowledge: Optional[KnowledgeClient] = None,
        loop_settings: Optional[LoopSettings] = None,
        prompts: Optional[PromptLibrary] = None,
        trace_collector: Optional[TraceCollector] = None,
    ):
        self._inference = inference
        self._tools = tools
        self._knowledge = knowledge
        self._limits = loop_settings or LoopSettings()
        self._prompts = prompts or PromptLibrary()
        self._trace_collector = trace_collector

    @property
    def loop_settings(self) -> LoopSettings:
        return self._limits

    def update_loop_settings(
        self,
        max_steps: Optional[int] = None,
        max_consecutive_failures: Optional[int] = None,
        max_similar_steps: Optional[int] = None,
        min_confidence_for_continue: Optional[float] = None,
    ) -> LoopSettings:
        """Override any subset of loop limits; the others keep their values."""
        overrides = {
            "max_steps": max_steps,
            "max_consecutive_failures": max_consecutive_failures,
            "max_similar_steps": max_similar_steps,
            "min_confidence_for_continue": min_confidence_for_continue,
        }
        merged = self._limits.model_dump()
        merged.update({k: v for k, v in overrides.items() if v is not None})
        self._limits = LoopSettings(**merged)
        logger.info(f"Loop settings updated: {self._limits.model_dump()}")
        return self._limits

    # =====================================================
    # Public entry points
    # =====================================================

    async def process_query(self, user_query: str) -> str:
        """Answer a query. Always returns a string."""
        result = await self.run(user_query)
        return result.answer

    async def run(self, user_query: str) -> AgentRunResult:
        """
        Run the full loop for one query.

        Returns:
            AgentRunResult with the answer, the final RunState and the step history
        """
        request_id = str(uuid.uuid4())
        started_at = datetime.now()
        context = ExecutionContext(user_query=user_query)
        state = RunState.RUNNING
        error: Optional[str] = None

        logger.info(f"[{request_id}] Processing query: {user_query!r}")

        try:
            state = await self._run_loop(context, request_id)
            answer = await self._generate_final_response(context)
        except Exception as e:
            logger.exception(f"[{request_id}] Run failed: {e}")
            state = RunState.ERROR
            error = str(e) or e.__class__.__name__
            answer = (
                f"I encountered an error while processing your request: {error}. "
                "Please try again."
            )

        result = AgentRunResult(
            query=user_query,
            answer=answer,
            state=state,
            steps=list(context.steps),
            consecutive_failures=context.consecutive_failures,
        )
        logger.info(
            f"[{request_id}] Run finished: state={state.value} steps={len(context.steps)} "
            f"ok={result.successful_steps} failed={result.failed_steps}"
        )

        if self._trace_collector is not None:
            self._trace_collector.capture(request_id=request_id, result=result, started_at=started_at, error=error)

        return result

    # =====================================================
    # Loop
    # =====================================================

    async def _run_loop(self, context: ExecutionContext, request_id: str) -> RunState:
        while context.current_step_index < self._limits.max_steps:
            state = next_state(context, self._limits)
            if state != RunState.RUNNING:
                logger.info(f"[{request_id}] Stopping: limits reached ({self._stop_reason(context)})")
                return state

            decision = await self._decide_next_step(context)
            logger.info(
                f"[{request_id}] Decision: type={decision.type} tool={decision.tool} "
                f"confidence={decision.confidence:.2f}"
            )

            if decision.type == StepType.FINAL_RESPONSE:
                return RunState.COMPLETED

            if decision.confidence < self._limits.min_confidence_for_continue:
                logger.info(
                    f"[{request_id}] Stopping: confidence {decision.confidence:.2f} below "
                    f"{self._limits.min_confidence_for_continue:.2f}"
                )
                return RunState.STOPPED

            signature = decision.signature()
            if signature in context.step_history:
                logger.info(f"[{request_id}] Stopping: repeated decision {signature}")
                return RunState.STOPPED
            context.step_history.add(signature)

            step = ExecutionStep.from_decision(decision, step_id=f"step_{context.current_step_index + 1}")
            step.start()
            context.steps.append(step)

            await self._execute_step(step, context)
            context.current_step_index += 1

        return RunState.EXHAUSTED

    def _stop_reason(self, context: ExecutionContext) -> str:
        if context.consecutive_failures >= self._limits.max_consecutive_failures:
            return f"{context.consecutive_failures} consecutive failures"
        if context.current_step_index >= self._limits.max_steps:
            return f"{context.current_step_index} steps"
        return f"last {self._limits.max_similar_steps} steps were similar"

    # =====================================================
    # Step decision
    # =====================================================

    async def _decide_next_step(self, context: ExecutionContext) -> StepDecision:
        """Ask the planner for the next step; never raises."""
        try:
            prompt = self._prompts.step_decision(
                context,
                tools=self._tools.list_all_tools(),
                limits=self._limits,
                knowledge_available=self._knowledge is not None,
            )
            response = await self._inference.infer(prompt, self.PLANNING_OPTIONS)
        except Exception as e:
            logger.warning(f"Planner call failed: {e}")
            return StepDecision.fallback(PLANNER_FAILURE_REASONING)

        return parse_step_decision(response)

    # =====================================================
    # Step execution
    # =====================================================

    async def _execute_step(self, step: ExecutionStep, context: ExecutionContext) -> None:
        """Run one step; failures are recorded on the step, not raised."""
        try:
            result = await self._dispatch(step, context)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            context.record_failure(step, message)
            logger.warning(
                f"{step.id} failed ({context.consecutive_failures} consecutive): {message}"
            )
            return

        context.record_success(step, result)
        logger.info(f"{step.id} completed ({step.type})")

    async def _dispatch(self, step: ExecutionStep, context: ExecutionContext) -> Any:
        if step.type == StepType.TOOL_CALL:
            return await self._run_tool_call(step, context)
        if step.type == StepType.KNOWLEDGE_QUERY:
            return await self._run_knowledge_query(step)
        if step.type == StepType.REASONING:
            prompt = self._prompts.reasoning(step, context)
            return await self._inference.infer(prompt, self.REASONING_OPTIONS)
        raise UnknownStepTypeError(f"Unknown step type: {step.type}")

    async def _run_tool_call(self, step: ExecutionStep, context: ExecutionContext) -> Any:
        if not step.tool:
            raise ValueError("tool_call step has no tool name")

        result = await self._tools.call_tool(step.tool, step.parameters or {})

        analysis = analyze_data_completeness(result, context.user_query)
        logger.info(f"{step.id} data completeness: {analysis.describe()}")
        return result

    async def _run_knowledge_query(self, step: ExecutionStep) -> str:
        if self._knowledge is None:
            raise KnowledgeRetrievalError("Knowledge retrieval is not configured")
        if not step.query:
            raise ValueError("knowledge_query step has no query")

        response = await self._knowledge.retrieve(step.query)
        if response.error:
            raise KnowledgeRetrievalError(response.error)
        return response.result

    # =====================================================
    # Final synthesis
    # =====================================================

    async def _generate_final_response(self, context: ExecutionContext) -> str:
        aggregated = aggregate_results(context.steps, context.user_query)
        logger.info(aggregated.summary)

        prompt = self._prompts.final_synthesis(context, aggregated)
        return await self._inference.infer(prompt, self.SYNTHESIS_OPTIONS)
