#!/usr/bin/env python3
# flowdeck/cli.py

import os
from pathlib import Path
from typing import Optional

import typer

from flowdeck.catalog.library import (
    ALL_CATEGORIES,
    instantiate_template,
    load_node_types,
    search_templates,
)
from flowdeck.deploy.netlify import NetlifyDeploymentService
from flowdeck.deploy.v0 import V0DeploymentOptions, V0Integration
from flowdeck.generator.agent import AgentError, AIWorkflowAgent
from flowdeck.schema.converter import is_adjacency_form, to_adjacency_workflow, to_visual_graph
from flowdeck.schema.validator import check_schema, validate_for_deployment, validate_workflow
from flowdeck.security.credentials import SecurityService
from flowdeck.utils.graph import graph_summary
from flowdeck.utils.io import dump_json, load_any, save_any, write_files

app = typer.Typer(help="flowdeck CLI - compose, validate and deploy n8n-style workflows")


def _read(path: Path) -> dict:
    try:
        data = load_any(path)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} does not contain a workflow object")
    return data


def _load_workflow(path: Path) -> dict:
    """Load a workflow file and return it in adjacency form."""
    data = _read(path)
    return data if is_adjacency_form(data) else to_adjacency_workflow(data)


def _emit(data, out: Optional[Path]) -> None:
    if out is None:
        typer.echo(dump_json(data))
    else:
        save_any(out, data)
        typer.echo(f"[ok] wrote {out}")


@app.command()
def convert(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow file (JSON or YAML)"),
    to: Optional[str] = typer.Option(None, "--to", help="Target form: adjacency | visual (default: the other one)"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the result here instead of stdout"),
):
    """Convert between the designer edge list and the adjacency map."""
    data = _read(input)
    target = (to or ("visual" if is_adjacency_form(data) else "adjacency")).lower()
    if target not in ("adjacency", "visual"):
        raise typer.BadParameter(f"Invalid target '{to}'. Choose one of: adjacency, visual")

    adjacency = data if is_adjacency_form(data) else to_adjacency_workflow(data)
    _emit(to_visual_graph(adjacency) if target == "visual" else adjacency, out)


@app.command()
def validate(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow file (JSON or YAML)"),
    deploy: bool = typer.Option(False, "--deploy", help="Also apply deployment checks (self-references)"),
    strict: bool = typer.Option(False, "--strict", help="Also run the JSON Schema check"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report to this path"),
):
    """Validate a workflow; exits with status 1 when it is invalid."""
    wf = _load_workflow(input)
    result = validate_for_deployment(wf) if deploy else validate_workflow(wf)
    errors = list(result["errors"])
    if strict:
        errors.extend(check_schema(wf))
    valid = not errors

    if report is not None:
        save_any(report, {"input": str(input), "valid": valid, "errors": errors})
        typer.echo(f"[ok] wrote report to {report}")

    if valid:
        typer.echo(f"Workflow '{wf.get('name')}' is valid ({len(wf.get('nodes') or [])} nodes)")
        return
    typer.echo("Detected issues:")
    for e in errors:
        typer.echo(f"- {e}")
    raise typer.Exit(code=1)


@app.command()
def inspect(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow file (JSON or YAML)"),
):
    """Print graph statistics: entry nodes, orphans, cycles and execution order."""
    wf = _load_workflow(input)
    summary = graph_summary(wf)
    typer.echo(f"Nodes:           {summary['n_nodes']}")
    typer.echo(f"Edges:           {summary['n_edges']}")
    typer.echo(f"Acyclic:         {summary['acyclic']}")
    typer.echo(f"Entry nodes:     {', '.join(map(str, summary['entry_nodes'])) or '-'}")
    typer.echo(f"Orphan nodes:    {', '.join(map(str, summary['orphan_nodes'])) or '-'}")
    for cycle in summary["cycles"]:
        typer.echo(f"Cycle:           {' -> '.join(map(str, cycle + cycle[:1]))}")
    if summary["acyclic"]:
        typer.echo(f"Execution order: {' -> '.join(map(str, summary['execution_order']))}")


@app.command()
def templates(
    query: str = typer.Option("", "--query", "-q", help="Search name, description and tags"),
    category: str = typer.Option(ALL_CATEGORIES, "--category", "-c", help="Template category"),
    show: Optional[str] = typer.Option(None, "--show", help="Print one template as an adjacency workflow"),
):
    """List workflow templates, or print one."""
    if show:
        try:
            _emit(instantiate_template(show), None)
        except KeyError as e:
            raise typer.BadParameter(str(e.args[0]))
        return
    for t in search_templates(query, category):
        typer.echo(f"{t['id']:<12} {t['name']:<32} [{t['category']}] {t['popularity']}  {', '.join(t['tags'])}")


@app.command()
def generate(
    description: str = typer.Option(..., "--description", "-d", help="Natural-language workflow description"),
    model: str = typer.Option("gpt-4o", "--model", help="LLM model for workflow generation"),
    complexity: str = typer.Option("medium", "--complexity", help="simple | medium | complex"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the workflow here instead of stdout"),
):
    """Generate a workflow from a description through the AI agent."""
    agent = AIWorkflowAgent(load_node_types(), model=model)
    try:
        wf = agent.generate_workflow(description, complexity=complexity)
    except AgentError as e:
        typer.echo(f"[error] {e}", err=True)
        raise typer.Exit(code=2)

    result = validate_workflow(wf)
    _emit(wf, out)
    for e in result["errors"]:
        typer.echo(f"[warn] {e}", err=True)


@app.command()
def bundle(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow file (JSON or YAML)"),
    out_dir: Path = typer.Option(..., "--out", "-o", help="Directory for the deployment files"),
    description: Optional[str] = typer.Option(None, "--description", help="Package description"),
):
    """Write the v0 deployment package (netlify.toml, function, package.json)."""
    wf = SecurityService.sanitize_workflow(_load_workflow(input))
    integration = V0Integration(os.environ.get("FLOWDECK_NETLIFY_TOKEN", ""))
    package = integration.prepare_deployment_package(
        wf, V0DeploymentOptions(workflow_name=wf.get("name") or "", workflow_description=description)
    )
    for path in write_files(out_dir, package["files"]):
        typer.echo(f"[ok] wrote {path}")


@app.command()
def deploy(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow file (JSON or YAML)"),
    target: str = typer.Option("netlify", "--target", help="netlify | v0"),
    preview: bool = typer.Option(False, "--preview", help="Request a preview deployment (v0 only)"),
):
    """Deploy a workflow (the transport is simulated)."""
    token = os.environ.get("FLOWDECK_NETLIFY_TOKEN", "")
    wf = SecurityService.sanitize_workflow(_load_workflow(input))
    target = target.lower()

    if target == "netlify":
        result = NetlifyDeploymentService(token).deploy_workflow(wf)
        for step in result.get("steps", []):
            typer.echo(f"[{step['status']:<7}] {step['name']}  {step['message']}")
    elif target == "v0":
        options = V0DeploymentOptions(workflow_name=wf.get("name") or "", deploy_preview=preview)
        result = V0Integration(token).initiate_deployment(wf, options)
    else:
        raise typer.BadParameter(f"Invalid target '{target}'. Choose one of: netlify, v0")

    if not result["success"]:
        typer.echo(f"Deployment failed: {result.get('error')}")
        raise typer.Exit(code=1)
    typer.echo(f"Deployed: {result.get('deploymentUrl')}")


@app.command()
def bench(
    glob: str = typer.Option("bench/validation/*/workflow.json", "--glob", help="Glob for workflow files"),
    out: Path = typer.Option(Path("experiments/results/validation.csv"), "--out", help="CSV path to write results"),
    deploy_checks: bool = typer.Option(False, "--deploy", help="Apply deployment checks too"),
):
    """Batch-validate workflows and export a CSV report."""
    import glob as _glob
    import pandas as pd

    rows = []
    for fp_str in sorted(_glob.glob(glob)):
        fp = Path(fp_str)
        try:
            data = load_any(fp)
        except ValueError as e:
            typer.echo(f"[skip] {fp} could not be parsed ({e}); skipping")
            continue
        if not isinstance(data, dict) or "nodes" not in data:
            typer.echo(f"[skip] {fp} does not look like a workflow (missing 'nodes'); skipping")
            continue
        wf = data if is_adjacency_form(data) else to_adjacency_workflow(data)
        result = validate_for_deployment(wf) if deploy_checks else validate_workflow(wf)
        summary = graph_summary(wf)
        rows.append({
            "id": fp.parent.name,
            "valid": result["valid"],
            "n_errors": len(result["errors"]),
            "n_nodes": summary["n_nodes"],
            "n_edges": summary["n_edges"],
            "acyclic": summary["acyclic"],
            "errors": " | ".join(result["errors"]),
        })

    out.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_csv(out, index=False)
    typer.echo(f"[ok] wrote {out}")


if __name__ == "__main__":
    app()
