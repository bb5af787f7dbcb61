"""decision-operator CLI.

Commands:
    run              Start the operator against the current cluster
    validate         Check a DecisionRequest manifest offline
    render           Print the KogitoRuntime a DecisionVersion deploys as
    build succeeded  Record a successful build on a DecisionVersion
    build failed     Record a failed build on a DecisionVersion
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import ValidationError

from decision_operator import __version__
from decision_operator.config import OperatorConfig, load_config
from decision_operator.controller import Controller, ControllerError
from decision_operator.models import DecisionRequest, DecisionVersion
from decision_operator.reconcilers.admission import AdmissionError, validate_request
from decision_operator.runtime import build_runtime
from decision_operator.store.base import StoreError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_cfg(path: str | None) -> OperatorConfig:
    """Explicit --config must load; auto-discovery never errors."""
    if path is not None:
        try:
            return load_config(path)
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            click.echo(f"Error loading config: {e}", err=True)
            sys.exit(1)
    try:
        return load_config()
    except Exception:
        return OperatorConfig()


def _read_manifest(path: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        click.echo(f"Error reading {path}: {e}", err=True)
        sys.exit(1)
    if not isinstance(data, dict):
        click.echo(f"Error: expected a YAML mapping in {path}", err=True)
        sys.exit(1)
    return data


config_option = click.option(
    "--config", "config_path", default=None, help="Path to decision-operator.yaml",
)


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Decision operator: serve customer rulesets as Kogito runtimes."""


# --- run ---


@cli.command()
@config_option
@click.option("--log-level", default=None, help="Override the configured log level")
@click.option("--namespace", "-n", default=None, help="Watch one namespace instead of all")
def run(config_path: str | None, log_level: str | None, namespace: str | None) -> None:
    """Start the operator."""
    cfg = _resolve_cfg(config_path)
    logging.basicConfig(level=(log_level or cfg.log_level).upper(), format=LOG_FORMAT)

    # kopf is only needed for the long-running operator
    from decision_operator.operator import run as run_operator

    run_operator(cfg, namespace=namespace)


# --- validate ---


@cli.command()
@click.argument("manifest")
@config_option
def validate(manifest: str, config_path: str | None) -> None:
    """Validate a DecisionRequest manifest without touching the cluster."""
    cfg = _resolve_cfg(config_path)
    try:
        request = DecisionRequest.model_validate(_read_manifest(manifest))
    except ValidationError as e:
        click.echo(click.style("FAIL", fg="red") + f"  {manifest}: {e}")
        sys.exit(1)

    try:
        namespace = validate_request(request, cfg)
    except AdmissionError as e:
        click.echo(click.style("REJECTED", fg="red", bold=True) + f"  {e.reason}: {e.message}")
        sys.exit(1)

    click.echo(
        click.style("OK", fg="green")
        + f"  {request.spec.name} version {request.spec.definition.version}"
        + f" -> namespace {namespace}"
    )


# --- render ---


@cli.command()
@click.argument("manifest")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def render(manifest: str, json_output: bool) -> None:
    """Print the KogitoRuntime a DecisionVersion manifest deploys as."""
    try:
        version = DecisionVersion.model_validate(_read_manifest(manifest))
    except ValidationError as e:
        click.echo(f"Error: invalid DecisionVersion: {e}", err=True)
        sys.exit(1)

    runtime = build_runtime(version)
    if json_output:
        click.echo(json.dumps(runtime, indent=2))
    else:
        click.echo(yaml.safe_dump(runtime, sort_keys=False), nl=False)


# --- build ---


@cli.group()
def build() -> None:
    """Record build results on DecisionVersions."""


def _controller(config_path: str | None) -> Controller:
    return Controller.from_config(_resolve_cfg(config_path))


@build.command("succeeded")
@click.argument("namespace")
@click.argument("name")
@click.option("--image", "image_ref", required=True, help="Built image reference")
@config_option
def build_succeeded(namespace: str, name: str, image_ref: str, config_path: str | None) -> None:
    """Mark a DecisionVersion's build as succeeded."""
    try:
        control = _controller(config_path).build_succeeded(namespace, name, image_ref)
    except (ControllerError, StoreError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"{namespace}/{name}: {control.kind}")


@build.command("failed")
@click.argument("namespace")
@click.argument("name")
@click.option("--message", "-m", required=True, help="Why the build failed")
@config_option
def build_failed(namespace: str, name: str, message: str, config_path: str | None) -> None:
    """Mark a DecisionVersion's build as failed."""
    try:
        control = _controller(config_path).build_failed(namespace, name, message)
    except (ControllerError, StoreError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"{namespace}/{name}: {control.kind}")
