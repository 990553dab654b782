"""
SmartAgent loop tests.

The planner, tools and knowledge base are scripted fakes; prompts are the
real templates from prompts/agent.yaml.
"""

import pytest

from knowledge.client import KnowledgeClient, KnowledgeResponse
from mcp_client.registry import ToolExecutionError
from observability.collector import TraceCollector
from orchestration.agent import SmartAgent
from orchestration.state import LoopSettings, RunState
from schemas.step import StepStatus
from tests.fakes import FINAL, FakeToolManager, ScriptedInference, decision


class FakeKnowledge(KnowledgeClient):
    def __init__(self, response: KnowledgeResponse):
        self._response = response
        self.questions = []

    async def retrieve(self, question: str) -> KnowledgeResponse:
        self.questions.append(question)
        return self._response


ISSUES = [{"key": "PROJ-1"}, {"key": "PROJ-2"}, {"key": "PROJ-3"}]


# =====================================================
# Completion paths
# =====================================================

@pytest.mark.asyncio
async def test_tool_call_then_final_response():
    inference = ScriptedInference([
        decision("tool_call", tool="search_issues", parameters={"jql": "status = Open"}),
        FINAL,
        "There are 3 open issues.",
    ])
    tools = FakeToolManager({"search_issues": ISSUES})
    agent = SmartAgent(inference, tools)

    result = await agent.run("How many open issues?")

    assert result.state == RunState.COMPLETED
    assert result.answer == "There are 3 open issues."
    assert len(result.steps) == 1
    assert result.steps[0].id == "step_1"
    assert result.steps[0].status == StepStatus.COMPLETED
    assert result.steps[0].result == ISSUES
    assert tools.calls == [{"tool": "search_issues", "params": {"jql": "status = Open"}}]

    # planner, planner, synthesis
    assert [c["options"] for c in inference.calls] == [
        SmartAgent.PLANNING_OPTIONS,
        SmartAgent.PLANNING_OPTIONS,
        SmartAgent.SYNTHESIS_OPTIONS,
    ]
    # Second planner call sees the first result in full
    assert "PROJ-3" in inference.calls[1]["prompt"]
    assert "step_1_tool_call" in inference.calls[2]["prompt"]


@pytest.mark.asyncio
async def test_process_query_returns_answer_text():
    inference = ScriptedInference([FINAL, "Hello!"])
    agent = SmartAgent(inference, FakeToolManager())

    assert await agent.process_query("hi") == "Hello!"


@pytest.mark.asyncio
async def test_failed_tools_do_not_stop_the_run():
    inference = ScriptedInference([
        decision("tool_call", tool="search_issues", parameters={"jql": "bad"}),
        decision("tool_call", tool="list_projects"),
        FINAL,
        "Both lookups failed.",
    ])
    tools = FakeToolManager({
        "search_issues": ToolExecutionError("JQL syntax error"),
        "list_projects": ToolExecutionError("Unauthorized"),
    })
    agent = SmartAgent(inference, tools)

    result = await agent.run("List my projects")

    assert result.state == RunState.COMPLETED
    assert [s.status for s in result.steps] == [StepStatus.FAILED, StepStatus.FAILED]
    assert result.steps[0].error == "JQL syntax error"
    assert result.failed_steps == 2
    assert result.consecutive_failures == 2
    assert result.answer == "Both lookups failed."


@pytest.mark.asyncio
async def test_unparseable_planner_output_goes_straight_to_synthesis():
    inference = ScriptedInference(["I'm not sure what to do", "Sorry, I could not find anything."])
    agent = SmartAgent(inference, FakeToolManager({"search_issues": ISSUES}))

    result = await agent.run("Anything?")

    assert result.state == RunState.COMPLETED
    assert result.steps == []
    assert len(inference.calls) == 2
    assert result.answer == "Sorry, I could not find anything."


@pytest.mark.asyncio
async def test_planner_exception_falls_back_to_final_response():
    inference = ScriptedInference([RuntimeError("rate limited"), "Answer without data."])
    agent = SmartAgent(inference, FakeToolManager())

    result = await agent.run("Anything?")

    assert result.state == RunState.COMPLETED
    assert result.steps == []
    assert result.answer == "Answer without data."


# =====================================================
# Guards
# =====================================================

@pytest.mark.asyncio
async def test_low_confidence_stops_before_executing():
    inference = ScriptedInference([
        decision("tool_call", tool="search_issues", confidence=0.4),
        "Best effort answer.",
    ])
    tools = FakeToolManager({"search_issues": ISSUES})
    agent = SmartAgent(inference, tools)

    result = await agent.run("Maybe search?")

    assert result.state == RunState.STOPPED
    assert result.steps == []
    assert tools.calls == []


@pytest.mark.asyncio
async def test_repeated_decision_is_never_executed():
    same = decision("tool_call", tool="search_issues", parameters={"jql": "project = A"})
    inference = ScriptedInference([same, same, "Found 3 issues."])
    tools = FakeToolManager({"search_issues": ISSUES})
    agent = SmartAgent(inference, tools)

    result = await agent.run("Issues in A?")

    assert result.state == RunState.STOPPED
    assert len(result.steps) == 1
    assert len(tools.calls) == 1


@pytest.mark.asyncio
async def test_similar_steps_exhaust_the_run():
    inference = ScriptedInference([
        decision("tool_call", tool="search_issues", parameters={"startAt": 0}),
        decision("tool_call", tool="search_issues", parameters={"startAt": 50}),
        "Here are the issues.",
    ])
    agent = SmartAgent(inference, FakeToolManager({"search_issues": ISSUES}))

    result = await agent.run("All issues")

    assert result.state == RunState.EXHAUSTED
    assert len(result.steps) == 2
    # Two planner calls, then synthesis
    assert len(inference.calls) == 3


@pytest.mark.asyncio
async def test_step_limit_is_respected():
    tools = FakeToolManager({f"tool_{i}": [i] for i in range(5)})
    inference = ScriptedInference(
        [decision("tool_call", tool=f"tool_{i}") for i in range(3)] + ["Done."]
    )
    agent = SmartAgent(inference, tools, loop_settings=LoopSettings(max_steps=3))

    result = await agent.run("Use every tool")

    assert result.state == RunState.EXHAUSTED
    assert len(result.steps) == 3
    assert [s.id for s in result.steps] == ["step_1", "step_2", "step_3"]
    assert len(tools.calls) == 3


@pytest.mark.asyncio
async def test_consecutive_failure_limit():
    tools = FakeToolManager({
        "a": ToolExecutionError("down"),
        "b": ToolExecutionError("down"),
        "c": ISSUES,
    })
    inference = ScriptedInference([
        decision("tool_call", tool="a"),
        decision("tool_call", tool="b"),
        "Providers are unavailable.",
    ])
    agent = SmartAgent(inference, tools, loop_settings=LoopSettings(max_consecutive_failures=2))

    result = await agent.run("Query")

    assert result.state == RunState.EXHAUSTED
    assert result.consecutive_failures == 2
    assert [c["tool"] for c in tools.calls] == ["a", "b"]


@pytest.mark.asyncio
async def test_unknown_tool_fails_the_step():
    inference = ScriptedInference([decision("tool_call", tool="does_not_exist"), FINAL, "No such tool."])
    agent = SmartAgent(inference, FakeToolManager({"search_issues": ISSUES}))

    result = await agent.run("Query")

    assert result.steps[0].status == StepStatus.FAILED
    assert result.steps[0].error == "Tool does_not_exist not found in any provider"


@pytest.mark.asyncio
async def test_tool_call_without_tool_name_fails_the_step():
    inference = ScriptedInference([decision("tool_call"), FINAL, "ok"])
    tools = FakeToolManager({"search_issues": ISSUES})
    agent = SmartAgent(inference, tools)

    result = await agent.run("Query")

    assert result.steps[0].status == StepStatus.FAILED
    assert tools.calls == []


@pytest.mark.asyncio
async def test_unknown_step_type_fails_the_step():
    inference = ScriptedInference([decision("browse_web"), FINAL, "Could not browse."])
    agent = SmartAgent(inference, FakeToolManager())

    result = await agent.run("Query")

    assert result.state == RunState.COMPLETED
    assert result.steps[0].type == "browse_web"
    assert result.steps[0].status == StepStatus.FAILED
    assert result.steps[0].error == "Unknown step type: browse_web"


# =====================================================
# Knowledge and reasoning steps
# =====================================================

@pytest.mark.asyncio
async def test_knowledge_query_step():
    knowledge = FakeKnowledge(KnowledgeResponse(result="Employees get 25 days of leave."))
    inference = ScriptedInference([
        decision("knowledge_query", query="vacation policy"),
        FINAL,
        "You get 25 days.",
    ])
    agent = SmartAgent(inference, FakeToolManager(), knowledge=knowledge)

    result = await agent.run("How much vacation do I get?")

    assert knowledge.questions == ["vacation policy"]
    assert result.steps[0].result == "Employees get 25 days of leave."
    assert "knowledge_query" in inference.calls[-1]["prompt"]


@pytest.mark.asyncio
async def test_knowledge_error_fails_the_step():
    knowledge = FakeKnowledge(KnowledgeResponse(result="", error="index unavailable"))
    inference = ScriptedInference([decision("knowledge_query", query="policy"), FINAL, "ok"])
    agent = SmartAgent(inference, FakeToolManager(), knowledge=knowledge)

    result = await agent.run("Policy?")

    assert result.steps[0].status == StepStatus.FAILED
    assert result.steps[0].error == "index unavailable"


@pytest.mark.asyncio
async def test_knowledge_query_without_client_fails_the_step():
    inference = ScriptedInference([decision("knowledge_query", query="policy"), FINAL, "ok"])
    agent = SmartAgent(inference, FakeToolManager())

    result = await agent.run("Policy?")

    assert result.steps[0].status == StepStatus.FAILED
    assert result.steps[0].error == "Knowledge retrieval is not configured"


@pytest.mark.asyncio
async def test_reasoning_step_uses_reasoning_options():
    inference = ScriptedInference([
        decision("tool_call", tool="search_issues"),
        decision("reasoning", reasoning="Group issues by assignee"),
        "Most issues are unassigned.",
        FINAL,
        "Summary.",
    ])
    agent = SmartAgent(inference, FakeToolManager({"search_issues": ISSUES}))

    result = await agent.run("Who owns the open issues?")

    assert result.steps[1].result == "Most issues are unassigned."
    reasoning_call = inference.calls[2]
    assert reasoning_call["options"] == SmartAgent.REASONING_OPTIONS
    assert "Group issues by assignee" in reasoning_call["prompt"]
    assert "PROJ-1" in reasoning_call["prompt"]


# =====================================================
# Errors, settings and tracing
# =====================================================

@pytest.mark.asyncio
async def test_synthesis_failure_becomes_apology():
    inference = ScriptedInference([FINAL, RuntimeError("service unavailable")])
    agent = SmartAgent(inference, FakeToolManager())

    result = await agent.run("Query")

    assert result.state == RunState.ERROR
    assert result.answer.startswith("I encountered an error while processing your request: ")
    assert "service unavailable" in result.answer
    assert result.answer.endswith("Please try again.")


@pytest.mark.asyncio
async def test_empty_synthesis_is_an_error():
    inference = ScriptedInference([FINAL, "   "])
    agent = SmartAgent(inference, FakeToolManager())

    answer = await agent.process_query("Query")

    assert "Empty response" in answer


def test_update_loop_settings_is_partial():
    agent = SmartAgent(ScriptedInference([]), FakeToolManager())

    agent.update_loop_settings(max_steps=3)
    settings = agent.update_loop_settings(min_confidence_for_continue=0.5)

    assert settings.max_steps == 3
    assert settings.min_confidence_for_continue == 0.5
    assert settings.max_consecutive_failures == 3
    assert settings.max_similar_steps == 2
    assert agent.loop_settings == settings


@pytest.mark.asyncio
async def test_run_emits_one_trace(recording_sink):
    inference = ScriptedInference([decision("tool_call", tool="search_issues"), FINAL, "Done."])
    collector = TraceCollector(sink=recording_sink)
    agent = SmartAgent(inference, FakeToolManager({"search_issues": ISSUES}), trace_collector=collector)

    await agent.run("Open issues?")

    assert len(recording_sink.traces) == 1
    trace = recording_sink.traces[0]
    assert trace.state == "completed"
    assert trace.success
    assert trace.steps[0]["tool"] == "search_issues"
    assert trace.metadata["successful_steps"] == 1


@pytest.mark.asyncio
async def test_disabled_collector_emits_nothing(recording_sink):
    inference = ScriptedInference([FINAL, "Done."])
    collector = TraceCollector(sink=recording_sink, enabled=False)
    agent = SmartAgent(inference, FakeToolManager(), trace_collector=collector)

    await agent.run("Query")

    assert recording_sink.traces == []
