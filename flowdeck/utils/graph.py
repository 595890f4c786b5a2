# flowdeck/utils/graph.py
from typing import Dict, Any, List, Optional
import networkx as nx

from flowdeck.schema.workflow import is_hashable, iter_targets


def build_graph(workflow: Dict[str, Any]) -> nx.MultiDiGraph:
    """
    Build a directed multigraph from an adjacency-form workflow (keyed by node id).
    One edge per adjacency target, carrying output / input / index attributes.
    Endpoints that are not declared nodes are added as bare nodes; list or object
    ids cannot be graph nodes and are left out along with their edges.
    """
    G = nx.MultiDiGraph()
    if not isinstance(workflow, dict):
        return G
    nodes = workflow.get("nodes")
    for n in nodes if isinstance(nodes, list) else []:
        if not isinstance(n, dict):
            continue
        nid = n.get("id")
        if nid is None or not is_hashable(nid):
            continue
        G.add_node(nid, name=n.get("name"), type=n.get("type"))

    for src, output, target in iter_targets(workflow.get("connections")):
        tgt = target.get("node")
        if src is None or tgt is None or not is_hashable(tgt):
            continue
        G.add_edge(src, tgt, output=output, input=target.get("type"), index=target.get("index", 0))
    return G


def entry_nodes(G: nx.MultiDiGraph) -> List[Any]:
    """Nodes with no incoming edge (where execution starts)."""
    return [n for n in G.nodes if G.in_degree(n) == 0]


def orphan_nodes(G: nx.MultiDiGraph) -> List[Any]:
    return [n for n in G.nodes if G.in_degree(n) == 0 and G.out_degree(n) == 0]


def find_cycles(G: nx.MultiDiGraph) -> List[List[Any]]:
    """Every elementary directed cycle, self-loops included."""
    return [list(c) for c in nx.simple_cycles(nx.DiGraph(G))]


def execution_order(G: nx.MultiDiGraph) -> Optional[List[Any]]:
    """Topological order of the nodes, or None when the graph has a cycle."""
    try:
        return list(nx.topological_sort(G))
    except nx.NetworkXUnfeasible:
        return None


def graph_summary(workflow: Dict[str, Any]) -> Dict[str, Any]:
    G = build_graph(workflow)
    order = execution_order(G)
    return {
        "n_nodes": G.number_of_nodes(),
        "n_edges": G.number_of_edges(),
        "acyclic": order is not None,
        "entry_nodes": entry_nodes(G),
        "orphan_nodes": orphan_nodes(G),
        "cycles": find_cycles(G),
        "execution_order": order or [],
    }
