# flowdeck/generator/agent.py

from __future__ import annotations
import json
import os
import time
from typing import Any, Callable, Dict, List, Optional

from openai import OpenAI

from flowdeck.utils.logger import get_logger

logger = get_logger("agent")

# complete(system, prompt, model) -> raw text reply
Completion = Callable[[str, str, str], str]

GENERATE_SYSTEM = (
    "You are an expert n8n workflow designer. Your task is to create valid n8n workflow JSON "
    "based on the user's description. Only respond with valid JSON that follows the n8n workflow schema. "
    "Key \"connections\" by node id and give every node an \"id\", \"name\", \"type\" and \"parameters\"."
)
OPTIMIZE_SYSTEM = (
    "You are an expert n8n workflow optimizer. Your task is to analyze the provided workflow and suggest "
    "optimizations based on the specified goals. Respond with a JSON object containing the optimized "
    "workflow, suggestions, and optimization details."
)
CONFIGURE_SYSTEM = (
    "You are an expert n8n node configurator. Your task is to configure the specified node based on the "
    "user's description. Only respond with valid JSON that follows the n8n node schema."
)
DEBUG_SYSTEM = (
    "You are an expert n8n workflow debugger. Your task is to analyze the provided workflow and error, and "
    "suggest solutions. Respond with a JSON object containing suggestions, a fixed workflow, and debug details."
)
HELP_SYSTEM = (
    "You are an expert n8n assistant. Your task is to provide helpful information about n8n workflows, "
    "nodes, and concepts. Respond with a JSON object containing your answer, related nodes, and examples."
)

OPTIMIZATION_GOALS = {
    "performance": "- Performance: Reduce execution time and resource usage",
    "reliability": "- Reliability: Improve error handling and recovery",
    "security": "- Security: Enhance data protection and access control",
}


class AgentError(RuntimeError):
    """Raised when an AI-assisted operation cannot produce a usable result."""


def _get_client() -> Optional[OpenAI]:
    """Return an OpenAI client configured from the environment, or None without an API key."""
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        return None
    kwargs: Dict[str, Any] = {"api_key": api_key}
    org = os.environ.get("OPENAI_ORG")
    if org:
        kwargs["organization"] = org
    base_url = os.environ.get("OPENAI_BASE_URL")
    if base_url:
        kwargs["base_url"] = base_url
    return OpenAI(**kwargs)


def openai_completion(system: str, prompt: str, model: str) -> str:
    """Default completion backend: one chat-completions round trip."""
    client = _get_client()
    if client is None:
        raise AgentError("LLM client not available (OPENAI_API_KEY is not set)")
    resp = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        temperature=0.1,
    )
    return (resp.choices[0].message.content or "").strip()


class AIWorkflowAgent:
    """
    Prompt builder and result cleaner around an opaque text-completion call.

    The completion callable is injected; tests and offline runs pass a fake,
    everything else falls back to the OpenAI chat API.
    """

    def __init__(
        self,
        available_node_types: Optional[List[Dict[str, Any]]] = None,
        model: str = "gpt-4o",
        complete: Optional[Completion] = None,
    ):
        self.available_node_types = list(available_node_types or [])
        self.model = model
        self._complete = complete or openai_completion

    # ---------- Public API ----------

    def generate_workflow(
        self,
        description: str,
        complexity: str = "medium",
        preferred_node_types: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        prompt = self.create_generation_prompt(description, complexity, preferred_node_types)
        raw = self._ask("generate workflow", GENERATE_SYSTEM, prompt)
        return self.clean_workflow(raw)

    def optimize_workflow(self, workflow: Dict[str, Any], goals: Optional[List[str]] = None) -> Dict[str, Any]:
        prompt = self.create_optimization_prompt(workflow, goals)
        response = self._ask("optimize workflow", OPTIMIZE_SYSTEM, prompt)
        optimized = response.get("workflow") or response.get("optimizedWorkflow") or {}
        return {
            "optimizedWorkflow": self.clean_workflow(optimized),
            "suggestions": response.get("suggestions") or [],
            "optimizationDetails": response.get("optimizationDetails") or "",
        }

    def configure_node(
        self,
        node_type: str,
        node_type_description: Dict[str, Any],
        user_description: str,
    ) -> Dict[str, Any]:
        prompt = self.create_node_configuration_prompt(node_type, node_type_description, user_description)
        raw = self._ask("configure node", CONFIGURE_SYSTEM, prompt)
        return self.clean_node(raw, node_type_description)

    def debug_workflow(self, workflow: Dict[str, Any], error: Optional[str] = None) -> Dict[str, Any]:
        problem = f"Error:\n{error}" if error else "Please identify any potential issues in this workflow."
        prompt = (
            "I have an n8n workflow that's encountering issues. "
            "Please analyze the workflow and suggest solutions.\n\n"
            f"Workflow:\n{json.dumps(workflow, indent=2)}\n\n"
            f"{problem}\n\n"
            "Please provide:\n"
            "1. A list of potential issues and solutions\n"
            "2. A fixed version of the workflow if possible\n"
            "3. Detailed explanation of the issues and how they were fixed\n"
        )
        response = self._ask("debug workflow", DEBUG_SYSTEM, prompt)
        fixed = response.get("fixedWorkflow")
        return {
            "suggestions": response.get("suggestions") or [],
            "fixedWorkflow": self.clean_workflow(fixed) if fixed else None,
            "debugDetails": response.get("debugDetails") or "",
        }

    def get_help(self, query: str) -> Dict[str, Any]:
        prompt = (
            "I need help with n8n workflows. Here's my question:\n\n"
            f"{query}\n\n"
            "Please provide:\n"
            "1. A detailed answer to my question\n"
            "2. Related n8n nodes that might be helpful\n"
            "3. Example usage if applicable\n"
        )
        response = self._ask("get help", HELP_SYSTEM, prompt)
        return {
            "answer": response.get("answer") or "",
            "relatedNodes": response.get("relatedNodes") or [],
            "examples": response.get("examples") or [],
        }

    # ---------- Prompts ----------

    def create_generation_prompt(
        self,
        description: str,
        complexity: str = "medium",
        preferred_node_types: Optional[List[str]] = None,
    ) -> str:
        blocks = []
        for nt in self.available_node_types:
            if preferred_node_types and nt.get("name") not in preferred_node_types:
                continue
            props = ", ".join(p.get("name", "") for p in nt.get("properties") or []) or "None"
            blocks.append(
                f"Name: {nt.get('name')}\n"
                f"Display Name: {nt.get('displayName') or nt.get('name')}\n"
                f"Description: {nt.get('description') or 'No description available'}\n"
                f"Inputs: {', '.join(nt.get('inputs') or ['main'])}\n"
                f"Outputs: {', '.join(nt.get('outputs') or ['main'])}\n"
                f"Properties: {props}"
            )

        return (
            "Create an n8n workflow based on the following description:\n\n"
            f"{description}\n\n"
            f"Complexity level: {complexity or 'medium'}\n\n"
            "Available node types:\n"
            f"{chr(10).join(blocks)}\n\n"
            f"Preferred node types: {', '.join(preferred_node_types) if preferred_node_types else 'Any'}\n\n"
            "The workflow should be valid according to the n8n workflow schema and should include:\n"
            "- A meaningful name\n"
            "- Properly configured nodes\n"
            "- Correct connections between nodes\n"
            "- Any necessary error handling\n\n"
            "Please provide the workflow as a valid JSON object.\n"
        )

    def create_optimization_prompt(self, workflow: Dict[str, Any], goals: Optional[List[str]] = None) -> str:
        selected = goals or list(OPTIMIZATION_GOALS)
        focus = "\n".join(OPTIMIZATION_GOALS[g] for g in selected if g in OPTIMIZATION_GOALS)
        return (
            "Optimize the following n8n workflow:\n\n"
            f"{json.dumps(workflow, indent=2)}\n\n"
            f"Optimization goals: {', '.join(selected)}\n\n"
            "Please analyze the workflow and suggest optimizations for:\n"
            f"{focus}\n\n"
            "Please provide a JSON response with the following structure:\n"
            '{"workflow": {...}, "suggestions": [...], "optimizationDetails": "..."}\n'
        )

    def create_node_configuration_prompt(
        self,
        node_type: str,
        node_type_description: Dict[str, Any],
        user_description: str,
    ) -> str:
        props = []
        for p in node_type_description.get("properties") or []:
            default = json.dumps(p["default"]) if "default" in p else "None"
            props.append(
                f"Name: {p.get('name')}\n"
                f"Display Name: {p.get('displayName') or p.get('name')}\n"
                f"Type: {p.get('type')}\n"
                f"Required: {'Yes' if p.get('required') else 'No'}\n"
                f"Default: {default}\n"
                f"Description: {p.get('description') or 'No description'}"
            )
        desc = node_type_description
        return (
            f'Configure an n8n node of type "{node_type}" based on the following description:\n\n'
            f"{user_description}\n\n"
            "Node type details:\n"
            f"Display Name: {desc.get('displayName') or desc.get('name')}\n"
            f"Description: {desc.get('description') or 'No description available'}\n"
            f"Inputs: {', '.join(desc.get('inputs') or ['main'])}\n"
            f"Outputs: {', '.join(desc.get('outputs') or ['main'])}\n\n"
            "Properties:\n"
            f"{chr(10).join(props) or 'No properties available'}\n\n"
            "Please provide the configured node as a valid JSON object following the n8n node schema.\n"
        )

    # ---------- Cleaning ----------

    @staticmethod
    def clean_workflow(workflow: Any) -> Dict[str, Any]:
        """
        Make a model-produced workflow well-formed: fill the name, coerce nodes and
        connections to the right container types, give every node id/name/type/
        parameters and a grid position, and default `active` to False.
        """
        wf = dict(workflow) if isinstance(workflow, dict) else {}
        if not wf.get("name"):
            wf["name"] = "Generated Workflow"
        if not isinstance(wf.get("nodes"), list):
            wf["nodes"] = []
        if not isinstance(wf.get("connections"), dict):
            wf["connections"] = {}

        nodes = []
        for i, raw in enumerate(wf["nodes"]):
            node = dict(raw) if isinstance(raw, dict) else {}
            node["id"] = node.get("id") or f"node_{i}"
            node["name"] = node.get("name") or f"Node {i}"
            node["type"] = node.get("type") or "unknown"
            if not isinstance(node.get("parameters"), dict):
                node["parameters"] = {}
            node["position"] = node.get("position") or [i * 200, (i // 5) * 200]
            nodes.append(node)
        wf["nodes"] = nodes

        if wf.get("active") is None:
            wf["active"] = False
        return wf

    @staticmethod
    def clean_node(node: Any, node_type_description: Dict[str, Any]) -> Dict[str, Any]:
        """Keep only declared parameters; required ones fall back to their default (or None)."""
        out = dict(node) if isinstance(node, dict) else {}
        out["id"] = out.get("id") or f"node_{int(time.time() * 1000)}"
        out["name"] = out.get("name") or node_type_description.get("displayName") or node_type_description.get("name")
        out["type"] = out.get("type") or node_type_description.get("name")
        out["position"] = out.get("position") or [0, 0]

        given = out.get("parameters")
        if not isinstance(given, dict):
            given = {}
        params: Dict[str, Any] = {}
        for prop in node_type_description.get("properties") or []:
            key = prop.get("name")
            if given.get(key) is not None:
                params[key] = given[key]
            elif prop.get("required"):
                params[key] = prop.get("default")
        out["parameters"] = params
        return out

    # ---------- Transport ----------

    def _ask(self, operation: str, system: str, prompt: str) -> Dict[str, Any]:
        logger.debug("agent %s: model=%s prompt_chars=%d", operation, self.model, len(prompt))
        try:
            text = self._complete(system, prompt, self.model)
            parsed = json.loads(text)
        except Exception as e:
            logger.error("agent %s failed: %s", operation, e)
            raise AgentError(f"Failed to {operation}: {e}") from e
        if not isinstance(parsed, dict):
            raise AgentError(f"Failed to {operation}: model did not return a JSON object")
        return parsed
