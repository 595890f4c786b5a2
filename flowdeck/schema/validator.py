# flowdeck/schema/validator.py

from typing import Dict, Any, List

from jsonschema import Draft7Validator

from .workflow import WORKFLOW_SCHEMA, iter_targets, node_ids

# Error kinds, carried as a bracketed prefix on each message.
TAG_NAME = "[NAME]"
TAG_NODES = "[NODES]"
TAG_NODE = "[NODE]"
TAG_SOURCE = "[SOURCE]"
TAG_TARGET = "[TARGET]"
TAG_CYCLE = "[CYCLE]"
TAG_SCHEMA = "[SCHEMA]"

_schema_validator = Draft7Validator(WORKFLOW_SCHEMA)


def _node_errors(nodes: List[Any]) -> List[str]:
    errors: List[str] = []
    for index, node in enumerate(nodes):
        if not isinstance(node, dict):
            errors.append(f"{TAG_NODE} Node at index {index} is not an object")
            continue
        ref = node.get("id") or index
        if not node.get("id"):
            errors.append(f"{TAG_NODE} Node at index {index} is missing an ID")
        if not node.get("type"):
            errors.append(f"{TAG_NODE} Node {ref} is missing a type")
        if not node.get("name"):
            errors.append(f"{TAG_NODE} Node {ref} is missing a name")
    return errors


def _connection_errors(workflow: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    connections = workflow.get("connections")
    if not isinstance(connections, dict):
        return errors

    # ids may be unhashable JSON values
    known = node_ids(workflow.get("nodes"))
    for source_id in connections:
        if source_id not in known:
            errors.append(f"{TAG_SOURCE} Connection references non-existent source node: {source_id}")
    for _source_id, _output, target in iter_targets(connections):
        target_id = target.get("node")
        if target_id not in known:
            errors.append(f"{TAG_TARGET} Connection references non-existent target node: {target_id}")
    return errors


def validate_workflow(workflow: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check an adjacency-form workflow for structural well-formedness.

    Rules are evaluated independently and every violation is collected:
      - name missing or empty
      - node set missing or empty
      - per node: one error for each of id / type / name that is missing
      - connection source id not among the node ids
      - connection target id not among the node ids

    Never raises. Returns {"valid": bool, "errors": [str]}.
    """
    if not isinstance(workflow, dict):
        workflow = {}
    errors: List[str] = []

    if not workflow.get("name"):
        errors.append(f"{TAG_NAME} Workflow name is required")

    nodes = workflow.get("nodes")
    if not isinstance(nodes, list) or not nodes:
        errors.append(f"{TAG_NODES} Workflow must contain at least one node")
        nodes = []

    errors.extend(_node_errors(nodes))
    errors.extend(_connection_errors(workflow))

    return {"valid": not errors, "errors": errors}


def self_loop_errors(workflow: Dict[str, Any]) -> List[str]:
    """
    Flag connections whose target is their own source.
    Only direct self-loops are reported; longer cycles (A->B->A) pass.
    """
    return [
        f"{TAG_CYCLE} Node {source_id} has a circular reference to itself"
        for source_id, _output, target in iter_targets(workflow.get("connections"))
        if target.get("node") == source_id
    ]


def validate_for_deployment(workflow: Dict[str, Any]) -> Dict[str, Any]:
    """General validation plus the self-loop check required before deploying."""
    if not isinstance(workflow, dict):
        workflow = {}
    result = validate_workflow(workflow)
    errors = result["errors"] + self_loop_errors(workflow)
    return {"valid": not errors, "errors": errors}


def check_schema(workflow: Any) -> List[str]:
    """
    Strict JSON Schema check of the adjacency form.
    Returns one [SCHEMA] message per violation, ordered by location.
    """
    issues: List[str] = []
    for err in sorted(_schema_validator.iter_errors(workflow), key=lambda e: list(map(str, e.absolute_path))):
        where = "/".join(str(p) for p in err.absolute_path) or "<root>"
        issues.append(f"{TAG_SCHEMA} {where}: {err.message}")
    return issues


def errors_by_tag(errors: List[str], tag: str) -> List[str]:
    return [e for e in errors if e.startswith(tag)]
