# flowdeck/deploy/netlify.py

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Optional

from flowdeck.schema.validator import validate_for_deployment
from flowdeck.utils.graph import build_graph, execution_order
from flowdeck.utils.logger import capture_messages, get_logger

logger = get_logger("deploy")

# publisher(files, config, workflow) -> {"deploymentId": ..., "deploymentUrl": ...}
Publisher = Callable[[Dict[str, str], "NetlifyDeploymentConfig", Dict[str, Any]], Dict[str, Any]]

DEPLOY_STEPS = [
    ("validate", "Validate Workflow"),
    ("prepare", "Prepare Deployment Files"),
    ("configure", "Configure Netlify"),
    ("deploy", "Deploy to Netlify"),
    ("verify", "Verify Deployment"),
]


@dataclass
class NetlifyDeploymentConfig:
    functions_directory: str = "netlify/functions"
    build_command: str = "npm run build"
    publish_directory: str = "dist"
    environment_variables: Dict[str, str] = field(default_factory=dict)
    site_id: Optional[str] = None
    team_id: Optional[str] = None
    branch: Optional[str] = None


def slugify(name: str) -> str:
    """Lower-case the name and replace each whitespace run with a dash."""
    return re.sub(r"\s+", "-", (name or "").lower())


def simulated_publisher(files: Dict[str, str], config: NetlifyDeploymentConfig, workflow: Dict[str, Any]) -> Dict[str, Any]:
    """Stand-in for the Netlify API: accepts any bundle and reports a site URL."""
    return {
        "deploymentId": f"deploy-{int(time.time() * 1000)}",
        "deploymentUrl": f"https://{slugify(workflow.get('name', ''))}.netlify.app",
    }


def _toml_str(value: Any) -> str:
    # TOML basic strings share JSON's escaping rules
    return json.dumps(str(value), ensure_ascii=False)


class NetlifyDeploymentService:
    def __init__(
        self,
        api_key: str,
        default_config: Optional[Dict[str, Any]] = None,
        publisher: Optional[Publisher] = None,
    ):
        self.api_key = api_key
        self.default_config = dict(default_config or {})
        self.publisher = publisher or simulated_publisher

    def generate_netlify_toml(self, config: NetlifyDeploymentConfig) -> str:
        env_lines = "\n".join(
            f"  {key} = {_toml_str(value)}" for key, value in config.environment_variables.items()
        )
        return (
            "[build]\n"
            f"  command = {_toml_str(config.build_command)}\n"
            f"  publish = {_toml_str(config.publish_directory)}\n"
            f"  functions = {_toml_str(config.functions_directory)}\n"
            "\n"
            "[build.environment]\n"
            f"{env_lines}\n"
            "\n"
            "[functions]\n"
            '  node_bundler = "esbuild"\n'
            '  external_node_modules = ["n8n-workflow", "n8n-core"]\n'
            "\n"
            "[[redirects]]\n"
            '  from = "/api/*"\n'
            '  to = "/.netlify/functions/:splat"\n'
            "  status = 200\n"
            "\n"
            "[[redirects]]\n"
            '  from = "/webhook/*"\n'
            '  to = "/.netlify/functions/webhook/:splat"\n'
            "  status = 200\n"
            "\n"
            "[[redirects]]\n"
            '  from = "/*"\n'
            '  to = "/index.html"\n'
            "  status = 200\n"
        )

    def generate_workflow_function(self, workflow: Dict[str, Any]) -> str:
        """Serverless handler source with the workflow embedded as a JSON literal."""
        return (
            "const { WorkflowExecute } = require('n8n-workflow');\n"
            "\n"
            f"const workflowData = {json.dumps(workflow, indent=2, ensure_ascii=False)};\n"
            "\n"
            "exports.handler = async (event, context) => {\n"
            "  try {\n"
            "    const workflowExecute = new WorkflowExecute(workflowData);\n"
            "    const inputData = JSON.parse(event.body || '{}');\n"
            "    const executionData = await workflowExecute.run(inputData);\n"
            "    return {\n"
            "      statusCode: 200,\n"
            "      body: JSON.stringify({ success: true, executionData })\n"
            "    };\n"
            "  } catch (error) {\n"
            "    console.error('Workflow execution failed:', error);\n"
            "    return {\n"
            "      statusCode: 500,\n"
            "      body: JSON.stringify({ success: false, error: error.message })\n"
            "    };\n"
            "  }\n"
            "};\n"
        )

    def merge_config(self, workflow: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> NetlifyDeploymentConfig:
        """
        Layer call-time overrides over the service defaults. Environment variables
        are merged key by key, and N8N_WORKFLOW_NAME always reflects the workflow.
        """
        overrides = dict(overrides or {})
        merged = {**self.default_config, **overrides}
        env = {
            **(self.default_config.get("environment_variables") or {}),
            **(overrides.get("environment_variables") or {}),
            "N8N_WORKFLOW_NAME": workflow.get("name") or "",
        }
        merged["environment_variables"] = env
        known = NetlifyDeploymentConfig.__dataclass_fields__
        cfg = NetlifyDeploymentConfig(**{k: v for k, v in merged.items() if k in known and v is not None})
        return cfg

    def build_files(self, workflow: Dict[str, Any], config: NetlifyDeploymentConfig) -> Dict[str, str]:
        slug = slugify(workflow.get("name", "")) or "workflow"
        return {
            "netlify.toml": self.generate_netlify_toml(config),
            f"{config.functions_directory}/{slug}.js": self.generate_workflow_function(workflow),
        }

    def deploy_workflow(self, workflow: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Validate, render and publish a workflow.

        Returns {success, deploymentId?, deploymentUrl?, logs, steps, error?}; failures
        are reported in the record, never raised. `logs` holds the INFO and above
        messages emitted by this module during the call.
        """
        steps = [{"id": sid, "name": name, "status": "pending", "message": ""} for sid, name in DEPLOY_STEPS]

        def mark(step_id: str, status: str, message: str = "") -> None:
            for s in steps:
                if s["id"] == step_id:
                    s["status"] = status
                    s["message"] = message
            logger.debug("deploy %s: %s %s", step_id, status, message)

        with capture_messages(logger) as logs:
            logger.info("Starting deployment...")
            current = "validate"
            try:
                check = validate_for_deployment(workflow)
                if not check["valid"]:
                    error = f"Invalid workflow: {', '.join(check['errors'])}"
                    mark(current, "error", error)
                    logger.warning(error)
                    return {"success": False, "error": error, "logs": logs, "steps": steps}
                mark(current, "success", "Workflow validation successful")

                current = "prepare"
                full_config = self.merge_config(workflow, config)
                files = self.build_files(workflow, full_config)
                order = execution_order(build_graph(workflow)) or []
                logger.info("Building site (%d files, %d nodes in execution order)...", len(files), len(order))
                mark(current, "success", "Deployment files prepared")

                current = "configure"
                mark(current, "success", "Netlify configuration complete")

                current = "deploy"
                logger.info("Deploying functions...")
                published = self.publisher(files, full_config, workflow)
                mark(current, "success", "Deployment to Netlify successful")

                current = "verify"
                if not published.get("deploymentUrl"):
                    raise RuntimeError("publisher returned no deployment URL")
                mark(current, "success", "Deployment verification successful")
                logger.info("Deployment complete!")

                return {
                    "success": True,
                    "deploymentId": published.get("deploymentId"),
                    "deploymentUrl": published.get("deploymentUrl"),
                    "logs": logs,
                    "steps": steps,
                    "config": asdict(full_config),
                }
            except Exception as e:
                logger.exception("Deployment failed")
                mark(current, "error", f"Error: {e}")
                return {"success": False, "error": str(e), "logs": logs, "steps": steps}
