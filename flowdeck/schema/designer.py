# flowdeck/schema/designer.py
"""
Edits applied by the workflow designer to a visual graph.
Each edit returns a new graph; the input graph is left untouched.
"""
import copy
import uuid
from typing import Any, Dict, List, Optional

from .workflow import DEFAULT_SLOT


def _clone(graph: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(graph)
    out.setdefault("nodes", [])
    out.setdefault("connections", [])
    return out


def new_node_id() -> str:
    return f"node-{uuid.uuid4().hex[:12]}"


def add_node(
    graph: Dict[str, Any],
    node_type: str,
    catalog: Optional[List[Dict[str, Any]]] = None,
    node_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Append a node of `node_type`, labelled with the catalog display name when known."""
    out = _clone(graph)
    display = node_type
    for desc in catalog or []:
        if desc.get("name") == node_type:
            display = desc.get("displayName") or node_type
            break
    out["nodes"].append({"id": node_id or new_node_id(), "type": node_type, "name": display})
    return out


def remove_node(graph: Dict[str, Any], node_id: str) -> Dict[str, Any]:
    """Drop a node together with every connection that starts or ends at it."""
    out = _clone(graph)
    out["nodes"] = [n for n in out["nodes"] if n.get("id") != node_id]
    out["connections"] = [
        c for c in out["connections"]
        if c.get("source") != node_id and c.get("target") != node_id
    ]
    return out


def connect(
    graph: Dict[str, Any],
    source: str,
    target: str,
    source_output: str = DEFAULT_SLOT,
    target_input: str = DEFAULT_SLOT,
    source_output_index: int = 0,
) -> Dict[str, Any]:
    out = _clone(graph)
    out["connections"].append({
        "source": source,
        "target": target,
        "sourceOutput": source_output,
        "targetInput": target_input,
        "sourceOutputIndex": source_output_index,
    })
    return out
