# flowdeck/catalog/library.py
import copy
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from flowdeck.schema.converter import to_adjacency_workflow
from flowdeck.utils.io import read_yaml

CATALOG_DIR = Path(__file__).resolve().parent
ALL_CATEGORIES = "All"


@lru_cache(maxsize=None)
def _load(file_name: str) -> tuple:
    return tuple(read_yaml(CATALOG_DIR / file_name) or [])


def load_node_types() -> List[Dict[str, Any]]:
    """Node type descriptions available in the designer palette."""
    return copy.deepcopy(list(_load("node_types.yaml")))


def get_node_type(name: str) -> Optional[Dict[str, Any]]:
    for desc in _load("node_types.yaml"):
        if desc.get("name") == name:
            return copy.deepcopy(desc)
    return None


def load_templates() -> List[Dict[str, Any]]:
    return copy.deepcopy(list(_load("templates.yaml")))


def template_categories() -> List[str]:
    seen: List[str] = []
    for t in _load("templates.yaml"):
        if t.get("category") not in seen:
            seen.append(t.get("category"))
    return [ALL_CATEGORIES] + seen


def _matches(template: Dict[str, Any], query: str) -> bool:
    q = query.lower()
    if q in str(template.get("name", "")).lower():
        return True
    if q in str(template.get("description", "")).lower():
        return True
    return any(q in str(tag).lower() for tag in template.get("tags", []))


def search_templates(query: str = "", category: str = ALL_CATEGORIES) -> List[Dict[str, Any]]:
    """
    Filter templates by free text (name, description or any tag, case-insensitive)
    and by exact category. Category "All" disables the category filter.
    """
    return [
        t for t in load_templates()
        if _matches(t, query or "")
        and (category == ALL_CATEGORIES or t.get("category") == category)
    ]


def instantiate_template(template_id: str) -> Dict[str, Any]:
    """Return the template's workflow in adjacency form. Unknown ids raise KeyError."""
    for t in _load("templates.yaml"):
        if t.get("id") == template_id:
            workflow = to_adjacency_workflow(t.get("workflow") or {})
            workflow["tags"] = list(t.get("tags") or [])
            return workflow
    raise KeyError(f"Unknown template: {template_id}")
