"""
Sentiment Routing Example: conditional edges over a shared state.

This example demonstrates:
1. Registering plain functions as nodes
2. Routing on the state a node just produced
3. APPEND-governed history across steps
4. Rendering the graph and the execution trace
"""

from stepgraph import END, START, Graph, LogLevel, StateContainer, StateStrategy, configure_logging
from stepgraph.core.graph import GraphConfig, GraphVisualizer
from stepgraph.core.logging import LogComponent, StepLoggingConfig, get_logger

NEGATIVE_WORDS = {"bad", "broken", "refund", "angry", "terrible"}

logger = get_logger(LogComponent.WORKFLOW)

###################################################################
# Node actions
###################################################################

def classify(state: StateContainer):
    words = set(state.get("message", str).lower().split())
    sentiment = "bad" if words & NEGATIVE_WORDS else "good"
    return {"sentiment": sentiment, "history": "classify"}


def finish(state: StateContainer):
    return {"reply": "Thanks for the feedback!", "history": "finish"}


def escalate(state: StateContainer):
    return {
        "reply": "Sorry to hear that, a human agent will follow up.",
        "ticket": {"priority": "high"},
        "history": "escalate",
    }


def route_sentiment(state: StateContainer) -> str:
    return "negative" if state.get("sentiment", str) == "bad" else "positive"

###################################################################
# Graph
###################################################################

def build_graph():
    graph = Graph(
        strategies={"history": StateStrategy.APPEND, "ticket": StateStrategy.MERGE},
        config=GraphConfig(logging_config=StepLoggingConfig(show_node_transitions=True)),
    )
    graph.add_node("classify", classify)
    graph.add_node("finish", finish)
    graph.add_node("escalate", escalate)

    graph.add_edge(START, "classify")
    graph.add_conditional_edges(
        "classify", route_sentiment, {"positive": "finish", "negative": "escalate"}
    )
    graph.set_finish_point("finish")
    graph.set_finish_point("escalate")
    return graph.compile()


def main():
    configure_logging(
        default_level=LogLevel.INFO,
        component_levels={LogComponent.ENGINE: LogLevel.STEP},
    )
    compiled = build_graph()
    viz = GraphVisualizer(compiled)
    print(viz.render_graph())

    for message in ("The new release is great", "My order arrived broken"):
        result = compiled.run({"message": message, "ticket": {"source": "email"}})
        logger.info(f"Handled {message!r}: {result.status.value} via {result.path}")
        print(viz.render_execution(result))
        print(f"reply:   {result.state['reply']}")
        print(f"history: {result.state['history']}")
        print(f"ticket:  {result.state['ticket']}")


if __name__ == "__main__":
    main()
