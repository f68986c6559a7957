"""LangGraph StateGraph for headless runs of the agency loop.

No pacing and no typing simulation: director → reducer → illustrator, repeat
until max_turns. Image side effects are awaited inline so every turn sees the
assets the previous one requested.
"""

import inspect

from langgraph.graph import END, StateGraph

from agency.agents.director import generate_turn
from agency.agents.illustrator import generate_image
from agency.reducer import apply_action, apply_image_result
from agency.state import Action, ProjectState, SideEffect
from agency.strategy import determine_strategy


class GraphState(ProjectState):
    last_action: Action | None
    pending_effects: list[SideEffect]
    max_turns: int


async def _director_node(state: GraphState) -> dict:
    """Decide the strategy and ask the oracle for the turn."""
    strategy = determine_strategy(state)
    action = await generate_turn(state, strategy)
    return {"last_action": action}


def _reducer_node(state: GraphState) -> dict:
    """Apply the decided action; queue its side effects for the illustrator."""
    new_state, side_effects = apply_action(state, state["last_action"])
    return {**new_state, "last_action": None, "pending_effects": side_effects}


async def _illustrator_node(state: GraphState) -> dict:
    """Run queued image generations and fold each result back into state."""
    current: ProjectState = state
    for effect in state["pending_effects"]:
        image = await generate_image(effect["prompt"])
        current = apply_image_result(current, effect, image)
    return {**current, "pending_effects": []}


def _route_after_turn(state: GraphState) -> str:
    """Conditional edge: keep going until the turn budget is spent."""
    if state["turn_count"] >= state["max_turns"]:
        return "end"
    return "continue"


# --- Build the graph ---

workflow = StateGraph(GraphState)

workflow.add_node("director", _director_node)
workflow.add_node("reducer", _reducer_node)
workflow.add_node("illustrator", _illustrator_node)

workflow.set_entry_point("director")

workflow.add_edge("director", "reducer")
workflow.add_edge("reducer", "illustrator")

workflow.add_conditional_edges(
    "illustrator",
    _route_after_turn,
    {
        "end": END,
        "continue": "director",
    },
)

graph = workflow.compile()

NODES_PER_TURN = 3


async def run_headless(state: ProjectState, max_turns: int) -> ProjectState:
    """Run max_turns turns back to back and return the final project state."""
    initial: GraphState = {**state, "last_action": None, "pending_effects": [], "max_turns": max_turns}
    final = await graph.ainvoke(
        initial, config={"recursion_limit": max_turns * NODES_PER_TURN + 10}
    )
    return {key: final[key] for key in ProjectState.__annotations__}


# --- Step-execution helpers ---

_NODE_FNS = {
    "director": _director_node,
    "reducer": _reducer_node,
    "illustrator": _illustrator_node,
}


async def run_single_step(state: GraphState, node_name: str) -> GraphState:
    """Run a single node and return the updated state.

    Lets callers single-step a turn without compiling a graph run.
    """
    node_fn = _NODE_FNS[node_name]
    updates = node_fn(state)
    if inspect.isawaitable(updates):
        updates = await updates
    return {**state, **updates}
