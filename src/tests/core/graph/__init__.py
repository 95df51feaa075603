"""Test suite for the stepgraph graph engine.

1. Graph definition and validation (test_base.py)
2. Execution engine (test_compiled.py)
3. State container and strategies (test_state.py)
4. Configuration (test_config.py)
5. Edges (test_edges.py)
6. Visualization (test_viz.py)
7. Nodes (nodes/)
"""
