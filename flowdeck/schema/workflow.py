# flowdeck/schema/workflow.py
import copy
from typing import Any, Dict, List

DEFAULT_SLOT = "main"
DEFAULT_WORKFLOW_NAME = "New Workflow"

# Node fields in wire order, with the value used when a field is absent.
NODE_DEFAULTS: Dict[str, Any] = {
    "position": [0, 0],
    "parameters": {},
    "typeVersion": 1,
    "credentials": {},
    "disabled": False,
    "notes": "",
}

# Optional top-level workflow keys carried through conversion untouched.
PASSTHROUGH_KEYS = ("id", "pinData", "staticData", "versionId")


def normalize_node(node: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a detached copy of `node` with every optional field filled in.
    A missing or empty name falls back to the node type.
    """
    out: Dict[str, Any] = {
        "id": node.get("id"),
        "name": node.get("name") or node.get("type"),
        "type": node.get("type"),
    }
    for key, default in NODE_DEFAULTS.items():
        value = node.get(key)
        out[key] = copy.deepcopy(default if value is None else value)
    if isinstance(out["position"], tuple):
        out["position"] = list(out["position"])
    return out


def copy_passthrough(src: Dict[str, Any], dst: Dict[str, Any]) -> Dict[str, Any]:
    for key in PASSTHROUGH_KEYS:
        if key in src:
            dst[key] = copy.deepcopy(src[key])
    return dst


def is_hashable(value: Any) -> bool:
    """JSON lists and objects cannot key a connection map or a graph node."""
    try:
        hash(value)
    except TypeError:
        return False
    return True


def iter_targets(connections: Any):
    """
    Yield (source_id, output_name, target) for every well-shaped adjacency entry,
    in source / output / sequence order. Malformed branches are skipped.
    """
    if not isinstance(connections, dict):
        return
    for source_id, outputs in connections.items():
        if not isinstance(outputs, dict):
            continue
        for output_name, targets in outputs.items():
            if not isinstance(targets, list):
                continue
            for target in targets:
                if isinstance(target, dict):
                    yield source_id, output_name, target


_HOP = {
    "type": "object",
    "required": ["node"],
    "properties": {
        "node": {"type": "string"},
        "type": {"type": "string", "minLength": 1},
        "index": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": True,
}

_CREDENTIAL_REF = {
    "type": "object",
    "required": ["id", "name"],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
    },
}

# Adjacency-form workflow keyed by node id.
WORKFLOW_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "nodes", "connections"],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string", "minLength": 1},
        "active": {"type": "boolean"},
        "nodes": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["id", "name", "type"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string", "minLength": 1},
                    "type": {"type": "string", "minLength": 1},
                    "position": {
                        "type": "array",
                        "items": {"type": "number"},
                        "minItems": 2,
                        "maxItems": 2,
                    },
                    "parameters": {"type": "object"},
                    "typeVersion": {"type": ["integer", "number"]},
                    "credentials": {
                        "type": "object",
                        "additionalProperties": _CREDENTIAL_REF,
                    },
                    "disabled": {"type": "boolean"},
                    "notes": {"type": "string"},
                },
                "additionalProperties": True,
            },
        },
        "connections": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": {"type": "array", "items": _HOP},
            },
        },
        "settings": {
            "type": "object",
            "properties": {
                "saveExecutionProgress": {"type": "boolean"},
                "saveManualExecutions": {"type": "boolean"},
                "saveDataErrorExecution": {"type": "string"},
                "saveDataSuccessExecution": {"type": "string"},
                "executionTimeout": {"type": "number"},
                "errorWorkflow": {"type": "string"},
                "callerPolicy": {"type": "string"},
                "timezone": {"type": "string"},
            },
        },
        "tags": {"type": "array", "items": {"type": "string"}},
        "pinData": {"type": "object", "additionalProperties": {"type": "array"}},
        "staticData": {"type": "object"},
        "versionId": {"type": "string"},
    },
}


def node_ids(nodes: Any) -> List[Any]:
    if not isinstance(nodes, list):
        return []
    return [n.get("id") for n in nodes if isinstance(n, dict)]
