"""
Review Loop Example: cycles, parallel retrieval and async actions.

This example demonstrates:
1. A FanOutNode gathering documents from several sources at once
2. An ActionNode calling a tool with inputs mapped from state
3. An async draft step with a bounded timeout
4. A draft/review cycle guarded by max_steps
5. Chat messages accumulated in an APPEND field
6. Running the graph from asyncio with arun()
"""

import asyncio
from typing import Dict, List

from stepgraph import END, START, Graph, LogLevel, StateContainer, StateStrategy, configure_logging
from stepgraph.core.graph import ActionNode, FanOutNode, GraphConfig, GraphVisualizer, blocking
from stepgraph.core.graph.nodes import MESSAGES_FIELD, message_update
from stepgraph.core.logging import LogComponent, get_logger

logger = get_logger(LogComponent.WORKFLOW)

###################################################################
# Sources
###################################################################

def search_web(state: StateContainer):
    topic = state.get("topic", str)
    return {"documents": [f"web: overview of {topic}", f"web: {topic} tutorial"]}


def search_notes(state: StateContainer):
    topic = state.get("topic", str)
    return {"documents": f"notes: meeting summary on {topic}"}


def score_documents(documents: List[str], keywords: List[str]) -> Dict[str, int]:
    return {doc: sum(word in doc for word in keywords) for doc in documents}

###################################################################
# Draft and review
###################################################################

async def draft(state: StateContainer):
    await asyncio.sleep(0.1)
    attempt = state.get("attempt", int, default=0) + 1
    scores = state.get("scores", dict)
    best = max(scores, key=scores.get)
    text = f"Draft {attempt}: based on '{best}'"
    return {
        "attempt": attempt,
        "draft": text,
        MESSAGES_FIELD: message_update(text, role="assistant"),
    }


def review(state: StateContainer):
    attempt = state.get("attempt", int)
    approved = attempt >= 2
    note = "Looks good." if approved else "Add more detail."
    return {"approved": approved, MESSAGES_FIELD: message_update(note)}


def route_review(state: StateContainer) -> bool:
    return state.get("approved", bool)

###################################################################
# Graph
###################################################################

def build_graph():
    graph = Graph(
        strategies={"documents": StateStrategy.APPEND, MESSAGES_FIELD: StateStrategy.APPEND},
        config=GraphConfig(max_steps=10),
    )
    graph.add_node(FanOutNode(
        name="retrieve",
        branches={"web": search_web, "notes": search_notes},
        timeout=5,
    ))
    graph.add_node(ActionNode(
        name="score",
        tool=score_documents,
        input_map={"documents": "documents", "keywords": "request.keywords"},
        required_state=["documents", "request"],
        output_key="scores",
    ))
    graph.add_node("draft", blocking(draft, timeout=2))
    graph.add_node("review", review)

    graph.chain([START, "retrieve", "score", "draft", "review"])
    graph.add_conditional_edges("review", route_review, {True: END, False: "draft"})
    return graph.compile()


async def main():
    configure_logging(default_level=LogLevel.INFO)
    compiled = build_graph()

    logger.info("Starting review loop")
    result = await compiled.arun({
        "topic": "graph engines",
        "request": {"keywords": ["overview", "tutorial", "graph"]},
    })

    print(GraphVisualizer(compiled).render_execution(result))
    for message in result.state.get(MESSAGES_FIELD, []):
        print(f"[{message['role']}] {message['content']}")

    capped = compiled.run({
        "topic": "graph engines",
        "request": {"keywords": ["graph"]},
    }, max_steps=3)
    logger.warning(f"With max_steps=3: {capped.status.value} ({capped.error})")


if __name__ == "__main__":
    asyncio.run(main())
