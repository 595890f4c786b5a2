# flowdeck/schema/converter.py
import copy
from typing import Any, Dict, List

from .workflow import (
    DEFAULT_SLOT,
    DEFAULT_WORKFLOW_NAME,
    copy_passthrough,
    is_hashable,
    iter_targets,
    normalize_node,
)


def _nodes(graph: Dict[str, Any]) -> List[Dict[str, Any]]:
    nodes = graph.get("nodes") or []
    if not isinstance(nodes, list):
        return []
    return [normalize_node(n) for n in nodes if isinstance(n, dict)]


def _tags(graph: Dict[str, Any]) -> List[Any]:
    tags = graph.get("tags")
    return list(tags) if isinstance(tags, list) else []


def to_adjacency_workflow(visual: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a designer graph (node list + flat edge list) into the adjacency form.

    Every visual connection is appended to connections[source][sourceOutput] as
    {"node": target, "type": targetInput, "index": sourceOutputIndex}; edges sharing
    a (source, sourceOutput) pair keep their input order. Nothing is validated here,
    a dangling edge converts as-is. Entries that cannot be keyed (non-objects,
    list or object source ids and output names) are dropped.
    """
    if not isinstance(visual, dict):
        visual = {}
    edges = visual.get("connections")
    connections: Dict[Any, Dict[str, List[Dict[str, Any]]]] = {}
    for conn in edges if isinstance(edges, list) else []:
        if not isinstance(conn, dict):
            continue
        source = conn.get("source")
        output = conn.get("sourceOutput") or DEFAULT_SLOT
        if not (is_hashable(source) and is_hashable(output)):
            continue
        index = conn.get("sourceOutputIndex")
        connections.setdefault(source, {}).setdefault(output, []).append({
            "node": conn.get("target"),
            "type": conn.get("targetInput") or DEFAULT_SLOT,
            "index": 0 if index is None else index,
        })

    name = visual.get("name")
    workflow = {
        "name": DEFAULT_WORKFLOW_NAME if name is None else name,
        "active": bool(visual.get("active", False)),
        "nodes": _nodes(visual),
        "connections": connections,
        "settings": copy.deepcopy(visual.get("settings") or {}),
        "tags": _tags(visual),
    }
    return copy_passthrough(visual, workflow)


def to_visual_graph(workflow: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten an adjacency-form workflow back into the designer's edge list.
    Order: source ids, then output names, then sequence order.
    """
    if not isinstance(workflow, dict):
        workflow = {}
    connections = [
        {
            "source": source_id,
            "target": target.get("node"),
            "sourceOutput": output_name,
            "targetInput": target.get("type") or DEFAULT_SLOT,
            "sourceOutputIndex": target.get("index") or 0,
        }
        for source_id, output_name, target in iter_targets(workflow.get("connections"))
    ]

    graph = {
        "name": workflow.get("name"),
        "active": bool(workflow.get("active", False)),
        "nodes": _nodes(workflow),
        "connections": connections,
        "settings": copy.deepcopy(workflow.get("settings") or {}),
        "tags": _tags(workflow),
    }
    return copy_passthrough(workflow, graph)


def is_adjacency_form(graph: Dict[str, Any]) -> bool:
    """Adjacency workflows keep connections in a mapping; visual graphs use a list."""
    return isinstance(graph, dict) and isinstance(graph.get("connections"), dict)
