"""
Agent Prompts

Loads YAML prompt templates and renders them from run state.
Context is dumped in full; downstream calls need complete prior results.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

from mcp_client.registry import ToolInfo
from orchestration.aggregation import AggregatedResults
from orchestration.completeness import analyze_data_completeness
from orchestration.state import ExecutionContext, LoopSettings
from schemas.step import ExecutionStep, StepStatus

DEFAULT_PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
PROMPTS_FILE = "agent.yaml"

REQUIRED_TEMPLATES = ("step_decision", "reasoning", "final_synthesis")


def dump_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class PromptLibrary:
    """
    Named prompt templates loaded from YAML.
    """

    def __init__(self, prompts_dir: Optional[str] = None):
        self._path = Path(prompts_dir or DEFAULT_PROMPTS_DIR) / PROMPTS_FILE
        self._templates = self._load()

    def _load(self) -> Dict[str, str]:
        with open(self._path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        missing = [name for name in REQUIRED_TEMPLATES if name not in data]
        if missing:
            raise ValueError(f"Prompt file {self._path} is missing templates: {', '.join(missing)}")
        return {name: str(text) for name, text in data.items()}

    def render(self, name: str, **values: Any) -> str:
        return self._templates[name].format(**values)

    # --- Builders ---

    def step_decision(
        self,
        context: ExecutionContext,
        tools: Iterable[ToolInfo],
        limits: LoopSettings,
        knowledge_available: bool,
    ) -> str:
        steps_summary = "\n".join(
            f"{s.id}: {s.reasoning} → {s.status.value}{' (has result)' if s.has_result else ''}"
            + (f" [error: {s.error}]" if s.error else "")
            for s in context.steps
        )

        completeness_lines = []
        for step in context.steps:
            if not step.has_result:
                continue
            analysis = analyze_data_completeness(step.result, context.user_query)
            completeness_lines.append(f"{step.id}: {analysis.describe()}")

        tools_list = "\n".join(
            f"- {t.name}: {t.description} (provider: {t.provider})" for t in tools
        )

        return self.render(
            "step_decision",
            user_query=context.user_query,
            step_count=len(context.steps),
            max_steps=limits.max_steps,
            steps_summary=steps_summary or "No steps completed yet",
            completeness_summary="\n".join(completeness_lines) or "No data retrieved yet",
            context_dump=dump_json(context.context) if context.context else "No context yet",
            tools_list=tools_list or "No tools available",
            knowledge_status="available" if knowledge_available else "not configured",
            consecutive_failures=context.consecutive_failures,
            max_consecutive_failures=limits.max_consecutive_failures,
            steps_remaining=limits.max_steps - context.current_step_index,
            recent_types=", ".join(s.type for s in context.steps[-3:]) or "none",
        )

    def reasoning(self, step: ExecutionStep, context: ExecutionContext) -> str:
        return self.render(
            "reasoning",
            purpose=step.reasoning,
            user_query=context.user_query,
            context_dump=dump_json(context.context) if context.context else "No context yet",
        )

    def final_synthesis(self, context: ExecutionContext, aggregated: AggregatedResults) -> str:
        steps_list = "\n".join(
            f"{s.id}: {s.reasoning} ({s.status.value})" + (f" - error: {s.error}" if s.error else "")
            for s in context.steps
        )
        entry_summary = "\n".join(
            f"- {e.label}: {e.data_type}, {e.item_count} items (from {', '.join(e.source_steps)})"
            for e in aggregated.entries
        )
        successful = sum(1 for s in context.steps if s.status == StepStatus.COMPLETED)
        failed = sum(1 for s in context.steps if s.status == StepStatus.FAILED)

        return self.render(
            "final_synthesis",
            user_query=context.user_query,
            aggregation_summary=aggregated.summary,
            entry_summary=entry_summary or "No results were retrieved",
            aggregated_data=dump_json(aggregated.data) if aggregated.data else "No data",
            steps_list=steps_list or "No steps were executed",
            total_steps=len(context.steps),
            successful_steps=successful,
            failed_steps=failed,
            consecutive_failures=context.consecutive_failures,
            total_items=aggregated.total_items,
        )
