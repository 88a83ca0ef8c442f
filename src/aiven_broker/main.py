"""CLI entrypoint for the Aiven service broker."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import requests
import typer
import yaml
from dotenv import load_dotenv

from .aiven import AivenAPIError
from .broker import AivenBroker, PlanChangeNotSupportedError, build_broker
from .config import load_config
from .http import UnexpectedResponseError

T = TypeVar("T")


def _configure_logging() -> None:
    env_level = os.getenv("AIVEN_BROKER_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, env_level, None)
    if not isinstance(level, int):
        level = logging.INFO
        logging.warning(
            "Unrecognized AIVEN_BROKER_LOG_LEVEL '%s'; defaulting to INFO",
            env_level,
        )
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")


load_dotenv(override=False)
_configure_logging()

app = typer.Typer(help="Aiven Elasticsearch service broker operations")


def _broker(config: Path) -> AivenBroker:
    return build_broker(load_config(config))


def _run(action: Callable[[], T]) -> T:
    try:
        return action()
    except (ValueError, yaml.YAMLError, PlanChangeNotSupportedError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except (AivenAPIError, UnexpectedResponseError, requests.RequestException) as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc


def _echo(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command("provision")
def provision(
    instance_id: str,
    service_id: str = typer.Option(..., help="Catalog service id"),
    plan_id: str = typer.Option(..., help="Catalog plan id"),
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to broker config YAML"),
) -> None:
    """Create the Aiven service backing an instance."""

    broker = _run(lambda: _broker(config))
    result = _run(lambda: broker.provision(instance_id, service_id, plan_id))
    _echo(
        {
            "instance_id": instance_id,
            "service_name": broker.service_name(instance_id),
            "dashboard_url": result.dashboard_url,
            "operation": result.operation_data,
        }
    )


@app.command("deprovision")
def deprovision(
    instance_id: str,
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to broker config YAML"),
) -> None:
    """Delete the Aiven service backing an instance."""

    broker = _run(lambda: _broker(config))
    result = _run(lambda: broker.deprovision(instance_id))
    _echo(
        {
            "instance_id": instance_id,
            "service_name": broker.service_name(instance_id),
            "instance_gone": result.instance_gone,
            "operation": result.operation_data,
        }
    )


@app.command("bind")
def bind(
    instance_id: str,
    binding_id: str,
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to broker config YAML"),
) -> None:
    """Create a service user and print its credentials."""

    broker = _run(lambda: _broker(config))
    binding = _run(lambda: broker.bind(instance_id, binding_id))
    _echo({"credentials": binding.credentials.to_dict()})


@app.command("unbind")
def unbind(
    instance_id: str,
    binding_id: str,
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to broker config YAML"),
) -> None:
    """Remove a service user."""

    broker = _run(lambda: _broker(config))
    _run(lambda: broker.unbind(instance_id, binding_id))
    _echo({"instance_id": instance_id, "binding_id": binding_id, "unbound": True})


@app.command("update")
def update(
    instance_id: str,
    service_id: str = typer.Option(..., help="Catalog service id"),
    plan_id: str = typer.Option(..., help="Catalog plan id"),
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to broker config YAML"),
) -> None:
    """Move an instance to another catalog plan."""

    broker = _run(lambda: _broker(config))
    result = _run(lambda: broker.update(instance_id, service_id, plan_id))
    _echo({"instance_id": instance_id, "plan_id": plan_id, "operation": result.operation_data})


@app.command("last-operation")
def last_operation(
    instance_id: str,
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to broker config YAML"),
    operation_data: Optional[str] = typer.Option(None, help="Operation token returned by a previous call"),
) -> None:
    """Report whether the last operation on an instance has finished."""

    broker = _run(lambda: _broker(config))
    outcome = _run(lambda: broker.last_operation(instance_id, operation_data or ""))
    _echo({"instance_id": instance_id, "state": outcome.state.value, "description": outcome.description})


@app.command("service-name")
def service_name(
    instance_id: str,
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to broker config YAML"),
) -> None:
    """Print the Aiven service name derived for an instance."""

    broker = _run(lambda: _broker(config))
    typer.echo(broker.service_name(instance_id))


if __name__ == "__main__":
    app()
