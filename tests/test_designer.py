import copy

from flowdeck.catalog.library import load_node_types
from flowdeck.schema.converter import to_adjacency_workflow
from flowdeck.schema.designer import add_node, connect, remove_node
from flowdeck.schema.validator import validate_workflow


def _designer_graph():
    return {
        "name": "New Workflow",
        "nodes": [
            {"id": "node-1", "type": "httpRequest", "name": "Fetch Data"},
            {"id": "node-2", "type": "function", "name": "Process Data"},
            {"id": "node-3", "type": "netlifyDeploy", "name": "Deploy to Netlify"},
        ],
        "connections": [
            {"source": "node-1", "target": "node-2"},
            {"source": "node-2", "target": "node-3"},
        ],
    }


def test_add_node_uses_catalog_display_name():
    g = add_node(_designer_graph(), "httpRequest", catalog=load_node_types(), node_id="node-9")
    assert g["nodes"][-1] == {"id": "node-9", "type": "httpRequest", "name": "HTTP Request"}


def test_add_unknown_type_falls_back_to_type_and_generates_id():
    g = add_node({"name": "x"}, "customThing")
    node = g["nodes"][0]
    assert node["name"] == "customThing"
    assert node["id"].startswith("node-")


def test_remove_node_drops_touching_connections():
    g = remove_node(_designer_graph(), "node-2")
    assert [n["id"] for n in g["nodes"]] == ["node-1", "node-3"]
    assert g["connections"] == []
    assert validate_workflow(to_adjacency_workflow(g))["valid"] is True


def test_connect_then_convert():
    g = connect(_designer_graph(), "node-1", "node-3", source_output_index=1)
    wf = to_adjacency_workflow(g)
    assert wf["connections"]["node-1"]["main"] == [
        {"node": "node-2", "type": "main", "index": 0},
        {"node": "node-3", "type": "main", "index": 1},
    ]


def test_edits_leave_input_untouched():
    g = _designer_graph()
    snapshot = copy.deepcopy(g)
    add_node(g, "if")
    remove_node(g, "node-1")
    connect(g, "node-3", "node-1")
    assert g == snapshot
