"""LangGraph assembly of the turn-by-turn agent loop."""

from langgraph.graph import END, StateGraph

from durable_agent.graph.nodes import begin, call_llm, finalize, run_tools
from durable_agent.graph.runtime import LoopRuntime
from durable_agent.graph.state import LoopState


def recursion_limit(max_turns: int) -> int:
    # begin + finalize, plus at most two nodes per turn.
    return 2 * max_turns + 5


def build_graph(runtime: LoopRuntime):
    max_turns = runtime.max_turns

    def _next_turn_or_stop(state: LoopState) -> str:
        if int(state.get("turn", 0)) < max_turns:
            return "next_turn"
        return "stop"

    def _after_llm(state: LoopState) -> str:
        outcome = state.get("outcome")
        if outcome == "complete":
            return "stop"
        if outcome == "tools":
            return "tools"
        return _next_turn_or_stop(state)

    def _begin(state: LoopState) -> LoopState:
        return begin.run(state, runtime)

    def _call_llm(state: LoopState) -> LoopState:
        return call_llm.run(state, runtime)

    def _run_tools(state: LoopState) -> LoopState:
        return run_tools.run(state, runtime)

    def _finalize(state: LoopState) -> LoopState:
        return finalize.run(state, runtime)

    graph = StateGraph(LoopState)

    graph.add_node("begin", _begin)
    graph.add_node("call_llm", _call_llm)
    graph.add_node("run_tools", _run_tools)
    graph.add_node("finalize", _finalize)

    graph.set_entry_point("begin")
    graph.add_conditional_edges(
        "begin", _next_turn_or_stop, {"next_turn": "call_llm", "stop": "finalize"}
    )
    graph.add_conditional_edges(
        "call_llm",
        _after_llm,
        {"tools": "run_tools", "next_turn": "call_llm", "stop": "finalize"},
    )
    graph.add_conditional_edges(
        "run_tools", _next_turn_or_stop, {"next_turn": "call_llm", "stop": "finalize"}
    )
    graph.add_edge("finalize", END)

    return graph.compile()
