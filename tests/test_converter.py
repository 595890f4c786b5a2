import copy

import pytest

from flowdeck.schema.converter import is_adjacency_form, to_adjacency_workflow, to_visual_graph
from flowdeck.schema.workflow import normalize_node


def _full_node(nid, name, ntype, x=0):
    return {
        "id": nid,
        "name": name,
        "type": ntype,
        "position": [x, 0],
        "parameters": {},
        "typeVersion": 1,
        "credentials": {},
        "disabled": False,
        "notes": "",
    }


def _full_graph():
    return {
        "name": "Branching",
        "active": True,
        "nodes": [
            _full_node("A", "Check", "if"),
            _full_node("B", "Yes", "function", 200),
            _full_node("C", "No", "function", 400),
        ],
        "connections": [
            {"source": "A", "target": "B", "sourceOutput": "true", "targetInput": "main", "sourceOutputIndex": 0},
            {"source": "A", "target": "C", "sourceOutput": "false", "targetInput": "main", "sourceOutputIndex": 1},
            {"source": "B", "target": "C", "sourceOutput": "main", "targetInput": "main", "sourceOutputIndex": 0},
        ],
        "settings": {"timezone": "UTC"},
        "tags": ["demo"],
    }


def test_round_trip_fully_specified_graph():
    g = _full_graph()
    assert to_visual_graph(to_adjacency_workflow(g)) == g


def test_round_trip_preserves_optional_workflow_keys():
    g = _full_graph()
    g["versionId"] = "v-1"
    g["pinData"] = {"A": [{"json": {"x": 1}}]}
    back = to_visual_graph(to_adjacency_workflow(g))
    assert back["versionId"] == "v-1"
    assert back["pinData"] == {"A": [{"json": {"x": 1}}]}


def test_fan_out_order_is_preserved():
    g = {
        "name": "fan",
        "nodes": [{"id": "A", "type": "t"}, {"id": "C", "type": "t"}, {"id": "B", "type": "t"}],
        "connections": [
            {"source": "A", "target": "C", "sourceOutput": "main", "sourceOutputIndex": 1},
            {"source": "A", "target": "B", "sourceOutput": "main", "sourceOutputIndex": 0},
        ],
    }
    wf = to_adjacency_workflow(g)
    assert wf["connections"]["A"]["main"] == [
        {"node": "C", "type": "main", "index": 1},
        {"node": "B", "type": "main", "index": 0},
    ]


def test_fan_out_b_then_c():
    g = {
        "name": "fan",
        "nodes": [{"id": "A", "type": "t"}, {"id": "B", "type": "t"}, {"id": "C", "type": "t"}],
        "connections": [
            {"source": "A", "target": "B", "sourceOutput": "main", "sourceOutputIndex": 0},
            {"source": "A", "target": "C", "sourceOutput": "main", "sourceOutputIndex": 1},
        ],
    }
    targets = to_adjacency_workflow(g)["connections"]["A"]["main"]
    assert [t["node"] for t in targets] == ["B", "C"]
    assert [t["index"] for t in targets] == [0, 1]


def test_connection_defaults_apply_per_field():
    g = {
        "name": "defaults",
        "nodes": [],
        "connections": [
            {"source": "A", "target": "B"},
            {"source": "A", "target": "C", "targetInput": "aux"},
            {"source": "A", "target": "D", "sourceOutput": "error", "sourceOutputIndex": 2},
        ],
    }
    conns = to_adjacency_workflow(g)["connections"]["A"]
    assert conns["main"] == [
        {"node": "B", "type": "main", "index": 0},
        {"node": "C", "type": "aux", "index": 0},
    ]
    assert conns["error"] == [{"node": "D", "type": "main", "index": 2}]


def test_node_defaults_are_filled():
    wf = to_adjacency_workflow({"name": "n", "nodes": [{"id": "x", "type": "httpRequest"}], "connections": []})
    assert wf["nodes"] == [{
        "id": "x",
        "name": "httpRequest",
        "type": "httpRequest",
        "position": [0, 0],
        "parameters": {},
        "typeVersion": 1,
        "credentials": {},
        "disabled": False,
        "notes": "",
    }]
    assert wf["active"] is False
    assert wf["settings"] == {}
    assert wf["tags"] == []


def test_round_trip_up_to_defaults():
    partial = {
        "name": "partial",
        "nodes": [{"id": "A", "name": "A", "type": "t"}, {"id": "B", "name": "B", "type": "t"}],
        "connections": [{"source": "A", "target": "B"}],
    }
    back = to_visual_graph(to_adjacency_workflow(partial))
    assert back["nodes"] == [normalize_node(n) for n in partial["nodes"]]
    assert back["connections"] == [
        {"source": "A", "target": "B", "sourceOutput": "main", "targetInput": "main", "sourceOutputIndex": 0}
    ]


def test_adjacency_round_trip():
    wf = to_adjacency_workflow(_full_graph())
    assert to_adjacency_workflow(to_visual_graph(wf)) == wf


def test_missing_name_defaults_but_empty_name_is_kept():
    assert to_adjacency_workflow({"nodes": [], "connections": []})["name"] == "New Workflow"
    assert to_adjacency_workflow({"name": "", "nodes": [], "connections": []})["name"] == ""


def test_malformed_graph_converts_as_is():
    g = {
        "name": "broken",
        "nodes": [{"id": "A", "type": "t"}, "not-a-node"],
        "connections": [{"source": "A", "target": "ghost"}, None, {"target": "A"}],
    }
    wf = to_adjacency_workflow(g)
    assert [n["id"] for n in wf["nodes"]] == ["A"]
    assert wf["connections"]["A"]["main"] == [{"node": "ghost", "type": "main", "index": 0}]
    assert wf["connections"][None]["main"] == [{"node": "A", "type": "main", "index": 0}]


def test_conversion_does_not_share_state_with_input():
    g = _full_graph()
    g["nodes"][0]["parameters"] = {"condition": "x > 1"}
    snapshot = copy.deepcopy(g)
    wf = to_adjacency_workflow(g)
    wf["nodes"][0]["parameters"]["condition"] = "changed"
    wf["nodes"][0]["position"][0] = 999
    assert g == snapshot


def test_to_visual_skips_malformed_branches():
    wf = {
        "name": "odd",
        "nodes": [{"id": "A", "name": "A", "type": "t"}],
        "connections": {"A": {"main": [{"node": "A"}, "junk"], "other": "junk"}, "B": None},
    }
    assert to_visual_graph(wf)["connections"] == [
        {"source": "A", "target": "A", "sourceOutput": "main", "targetInput": "main", "sourceOutputIndex": 0}
    ]


def test_form_detection():
    assert is_adjacency_form({"connections": {}})
    assert not is_adjacency_form({"connections": []})


def test_round_trip_regroups_edges_by_source():
    g = {
        "name": "regroup",
        "nodes": [{"id": i, "type": "t"} for i in ("A", "B", "C")],
        "connections": [
            {"source": "A", "target": "B"},
            {"source": "B", "target": "C"},
            {"source": "A", "target": "C"},
        ],
    }
    back = to_visual_graph(to_adjacency_workflow(g))
    assert [(c["source"], c["target"]) for c in back["connections"]] == [("A", "B"), ("A", "C"), ("B", "C")]


@pytest.mark.parametrize("graph", [
    None,
    5,
    "workflow",
    {"name": "w", "connections": 5},
    {"name": "w", "connections": [], "tags": 5},
    {"name": "w", "connections": [{"source": ["A"], "target": "B"}]},
    {"name": "w", "connections": [{"source": "A", "target": "B", "sourceOutput": {"x": 1}}]},
    {"name": "w", "connections": {"A": {"main": [{"node": ["B"]}]}}, "tags": "t"},
])
def test_converters_never_raise(graph):
    adjacency = to_adjacency_workflow(graph)
    visual = to_visual_graph(graph)
    assert isinstance(adjacency["connections"], dict)
    assert isinstance(visual["connections"], list)
    assert isinstance(adjacency["tags"], list) and isinstance(visual["tags"], list)


def test_unkeyable_edges_are_dropped_and_the_rest_kept():
    g = {
        "name": "w",
        "nodes": [{"id": "A", "type": "t"}, {"id": "B", "type": "t"}],
        "connections": [
            {"source": ["A"], "target": "B"},
            {"source": "A", "target": "B", "sourceOutput": ["x"]},
            {"source": "A", "target": "B"},
        ],
    }
    assert to_adjacency_workflow(g)["connections"] == {"A": {"main": [{"node": "B", "type": "main", "index": 0}]}}
