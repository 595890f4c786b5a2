# flowdeck/deploy/v0.py

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from flowdeck.deploy.netlify import (
    NetlifyDeploymentConfig,
    NetlifyDeploymentService,
    Publisher,
    slugify,
)
from flowdeck.schema.validator import validate_for_deployment
from flowdeck.utils.logger import get_logger

logger = get_logger("deploy.v0")

PACKAGE_DEPENDENCIES = {
    "n8n-workflow": "^1.0.0",
    "n8n-core": "^1.0.0",
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
}
PACKAGE_DEV_DEPENDENCIES = {
    "@types/react": "^18.2.15",
    "@types/react-dom": "^18.2.7",
    "@vitejs/plugin-react": "^4.0.3",
    "typescript": "^5.0.2",
    "vite": "^4.4.5",
}


@dataclass
class V0DeploymentOptions:
    workflow_name: str = ""
    workflow_description: Optional[str] = None
    netlify_team_id: Optional[str] = None
    netlify_account_id: Optional[str] = None
    environment_variables: Dict[str, str] = field(default_factory=dict)
    deploy_preview: bool = False


class V0Integration:
    """One-click deployment: bundles the site files and hands them to the publisher."""

    def __init__(self, netlify_api_key: str, publisher: Optional[Publisher] = None):
        self.netlify_service = NetlifyDeploymentService(netlify_api_key, publisher=publisher)

    def generate_deployment_files(self, workflow: Dict[str, Any], options: V0DeploymentOptions) -> Dict[str, str]:
        slug = slugify(workflow.get("name", "")) or "workflow"
        config = NetlifyDeploymentConfig(
            environment_variables={
                "N8N_WORKFLOW_NAME": workflow.get("name") or "",
                **options.environment_variables,
            },
        )
        package_json = {
            "name": slug,
            "version": "1.0.0",
            "private": True,
            "scripts": {"build": "vite build", "dev": "vite", "preview": "vite preview"},
            "dependencies": PACKAGE_DEPENDENCIES,
            "devDependencies": PACKAGE_DEV_DEPENDENCIES,
        }
        return {
            "netlify.toml": self.netlify_service.generate_netlify_toml(config),
            f"{config.functions_directory}/{slug}.js": self.netlify_service.generate_workflow_function(workflow),
            "package.json": json.dumps(package_json, indent=2) + "\n",
        }

    def prepare_deployment_package(self, workflow: Dict[str, Any], options: V0DeploymentOptions) -> Dict[str, Any]:
        name = workflow.get("name") or ""
        return {
            "name": options.workflow_name or name,
            "description": options.workflow_description or f"n8n workflow: {name}",
            "files": self.generate_deployment_files(workflow, options),
            "deploymentOptions": {
                "netlify": {
                    "teamId": options.netlify_team_id,
                    "accountId": options.netlify_account_id,
                    "environmentVariables": options.environment_variables,
                },
                "preview": options.deploy_preview,
            },
        }

    def initiate_deployment(self, workflow: Dict[str, Any], options: V0DeploymentOptions) -> Dict[str, Any]:
        check = validate_for_deployment(workflow)
        if not check["valid"]:
            return {"success": False, "error": f"Invalid workflow: {', '.join(check['errors'])}"}
        try:
            package = self.prepare_deployment_package(workflow, options)
            config = NetlifyDeploymentConfig(
                team_id=options.netlify_team_id,
                environment_variables=dict(options.environment_variables),
            )
            published = self.netlify_service.publisher(package["files"], config, workflow)
            logger.info("v0 deployment of %r published to %s", package["name"], published.get("deploymentUrl"))
            return {"success": True, "deploymentUrl": published.get("deploymentUrl")}
        except Exception as e:
            logger.exception("v0 deployment failed")
            return {"success": False, "error": str(e)}
