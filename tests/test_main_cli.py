from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from aiven_broker.aiven import AivenAPIError
from aiven_broker.broker import PlanChangeNotSupportedError
from aiven_broker.config import PlanNotFoundError
from aiven_broker.main import app as cli_app
from aiven_broker.models import (
    Binding,
    Credentials,
    DeprovisionResult,
    LastOperation,
    ProvisionResult,
    UpdateResult,
)
from aiven_broker.status import LastOperationState


class DummyBroker:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def service_name(self, instance_id: str) -> str:
        return f"env-{instance_id}"

    def provision(self, instance_id: str, service_id: str, plan_id: str) -> ProvisionResult:
        self.calls.append(("provision", instance_id, service_id, plan_id))
        if plan_id == "missing":
            raise PlanNotFoundError(service_id=service_id, plan_id=plan_id)
        return ProvisionResult()

    def deprovision(self, instance_id: str) -> DeprovisionResult:
        self.calls.append(("deprovision", instance_id))
        return DeprovisionResult(instance_gone=True)

    def bind(self, instance_id: str, binding_id: str) -> Binding:
        self.calls.append(("bind", instance_id, binding_id))
        return Binding(credentials=Credentials(host="host", port="443", user=binding_id, password="pw"))

    def unbind(self, instance_id: str, binding_id: str) -> None:
        self.calls.append(("unbind", instance_id, binding_id))
        raise AivenAPIError(500, "DELETE", "url", "boom")

    def update(self, instance_id: str, service_id: str, plan_id: str) -> UpdateResult:
        self.calls.append(("update", instance_id, service_id, plan_id))
        if plan_id == "small":
            raise PlanChangeNotSupportedError(instance_id, plan_id, "downgrade")
        return UpdateResult()

    def last_operation(self, instance_id: str, operation_data: str = "") -> LastOperation:
        self.calls.append(("last_operation", instance_id, operation_data))
        return LastOperation(state=LastOperationState.IN_PROGRESS, description="Rebuilding")


def _setup(tmp_path, monkeypatch) -> tuple[CliRunner, Path, DummyBroker]:
    config_path = Path(tmp_path) / "config.yaml"
    config_path.write_text("dummy: true")
    broker = DummyBroker()
    monkeypatch.setattr("aiven_broker.main.load_config", lambda _: {"dummy": True})
    monkeypatch.setattr("aiven_broker.main.build_broker", lambda _: broker)
    return CliRunner(), config_path, broker


def test_provision_command_outputs_json(tmp_path, monkeypatch) -> None:
    runner, config_path, broker = _setup(tmp_path, monkeypatch)

    result = runner.invoke(
        cli_app,
        ["provision", "abc", "--service-id", "es", "--plan-id", "small", "--config", str(config_path)],
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["instance_id"] == "abc"
    assert payload["service_name"] == "env-abc"
    assert broker.calls == [("provision", "abc", "es", "small")]


def test_provision_unknown_plan_exits_with_validation_code(tmp_path, monkeypatch) -> None:
    runner, config_path, _ = _setup(tmp_path, monkeypatch)

    result = runner.invoke(
        cli_app,
        ["provision", "abc", "--service-id", "es", "--plan-id", "missing", "--config", str(config_path)],
    )

    assert result.exit_code == 1


def test_deprovision_command_reports_gone_instance(tmp_path, monkeypatch) -> None:
    runner, config_path, _ = _setup(tmp_path, monkeypatch)

    result = runner.invoke(cli_app, ["deprovision", "abc", "--config", str(config_path)])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["instance_gone"] is True


def test_bind_command_prints_credentials(tmp_path, monkeypatch) -> None:
    runner, config_path, _ = _setup(tmp_path, monkeypatch)

    result = runner.invoke(cli_app, ["bind", "abc", "binding-1", "--config", str(config_path)])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["credentials"]["service_uri"] == "https://binding-1:pw@host:443"
    assert payload["credentials"]["service_uri_params"]["user"] == "binding-1"


def test_unbind_vendor_failure_exits_with_vendor_code(tmp_path, monkeypatch) -> None:
    runner, config_path, broker = _setup(tmp_path, monkeypatch)

    result = runner.invoke(cli_app, ["unbind", "abc", "binding-1", "--config", str(config_path)])

    assert result.exit_code == 2
    assert broker.calls == [("unbind", "abc", "binding-1")]


def test_update_plan_change_not_supported_exits_with_validation_code(tmp_path, monkeypatch) -> None:
    runner, config_path, _ = _setup(tmp_path, monkeypatch)

    result = runner.invoke(
        cli_app,
        ["update", "abc", "--service-id", "es", "--plan-id", "small", "--config", str(config_path)],
    )

    assert result.exit_code == 1


def test_last_operation_command_outputs_state(tmp_path, monkeypatch) -> None:
    runner, config_path, broker = _setup(tmp_path, monkeypatch)

    result = runner.invoke(
        cli_app,
        ["last-operation", "abc", "--operation-data", "token", "--config", str(config_path)],
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload == {"instance_id": "abc", "state": "in progress", "description": "Rebuilding"}
    assert broker.calls == [("last_operation", "abc", "token")]


def test_service_name_command(tmp_path, monkeypatch) -> None:
    runner, config_path, _ = _setup(tmp_path, monkeypatch)

    result = runner.invoke(cli_app, ["service-name", "abc", "--config", str(config_path)])

    assert result.exit_code == 0
    assert result.stdout.strip() == "env-abc"


def test_malformed_config_exits_with_validation_code(tmp_path) -> None:
    config_path = Path(tmp_path) / "config.yaml"
    config_path.write_text("api_token: [unclosed\n")

    result = CliRunner().invoke(cli_app, ["service-name", "abc", "--config", str(config_path)])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
