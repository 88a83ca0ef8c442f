"""Lifecycle operations of the Aiven Elasticsearch service broker."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from .aiven import SERVICE_TYPE, AivenClient, HttpAivenClient, PlanTransitionRejectedError, ServiceNotFoundError
from .config import BrokerConfig
from .ipfilter import EnvironmentIPFilterSource, parse_ip_whitelist
from .models import (
    Binding,
    Credentials,
    DeprovisionResult,
    LastOperation,
    ProvisionResult,
    UpdateResult,
)
from .naming import build_service_name
from .status import map_status

logger = logging.getLogger(__name__)


class PlanChangeNotSupportedError(RuntimeError):
    """Aiven refused the requested plan change; surfaced to users as HTTP 422."""

    status_code = 422
    error_key = "PlanChangeNotSupported"

    def __init__(self, instance_id: str, plan_id: str, reason: str = "") -> None:
        self.instance_id = instance_id
        self.plan_id = plan_id
        self.reason = reason
        message = f"The service plan cannot be changed to '{plan_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AivenBroker:
    """Translates broker lifecycle requests into Aiven API calls.

    The broker keeps no per-instance state: every call derives the Aiven
    service name from the instance id and asks Aiven for the current truth.
    Calls for the same instance are not serialized here.
    """

    def __init__(
        self,
        config: BrokerConfig,
        client: AivenClient,
        ip_filter_source: Optional[Callable[[], str]] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._ip_filter_source = ip_filter_source or EnvironmentIPFilterSource(config.ip_whitelist_env)

    @classmethod
    def from_config(cls, config: BrokerConfig) -> "AivenBroker":
        client = HttpAivenClient(
            base_url=config.api_url,
            api_token=config.api_token,
            project=config.project,
            timeout=config.request_timeout,
        )
        return cls(config, client)

    def service_name(self, instance_id: str) -> str:
        return build_service_name(self._config.service_name_prefix, instance_id)

    def provision(
        self,
        instance_id: str,
        service_id: str,
        plan_id: str,
        timeout: Optional[float] = None,
    ) -> ProvisionResult:
        plan = self._config.find_plan(service_id, plan_id)
        ip_filter = parse_ip_whitelist(self._ip_filter_source())
        name = self.service_name(instance_id)
        logger.info("Provisioning instance '%s' as Aiven service '%s' (plan %s)", instance_id, name, plan.aiven_plan)
        self._client.create_service(
            name=name,
            cloud=self._config.cloud,
            plan=plan.aiven_plan,
            service_type=SERVICE_TYPE,
            elasticsearch_version=plan.elasticsearch_version,
            ip_filter=ip_filter,
            timeout=timeout,
        )
        return ProvisionResult()

    def deprovision(self, instance_id: str, timeout: Optional[float] = None) -> DeprovisionResult:
        name = self.service_name(instance_id)
        logger.info("Deprovisioning instance '%s' (Aiven service '%s')", instance_id, name)
        try:
            self._client.delete_service(name, timeout=timeout)
        except ServiceNotFoundError:
            logger.info("Aiven service '%s' already gone; treating deprovision as complete", name)
            return DeprovisionResult(instance_gone=True)
        return DeprovisionResult()

    def bind(self, instance_id: str, binding_id: str, timeout: Optional[float] = None) -> Binding:
        name = self.service_name(instance_id)
        logger.info("Binding '%s' to instance '%s' (Aiven service '%s')", binding_id, instance_id, name)
        password = self._client.create_service_user(name, binding_id, timeout=timeout)
        host, port = self._client.get_service_connection_details(name, timeout=timeout)
        return Binding(credentials=Credentials(host=host, port=port, user=binding_id, password=password))

    def unbind(self, instance_id: str, binding_id: str, timeout: Optional[float] = None) -> None:
        name = self.service_name(instance_id)
        logger.info("Unbinding '%s' from instance '%s' (Aiven service '%s')", binding_id, instance_id, name)
        self._client.delete_service_user(name, binding_id, timeout=timeout)

    def update(
        self,
        instance_id: str,
        service_id: str,
        plan_id: str,
        timeout: Optional[float] = None,
    ) -> UpdateResult:
        plan = self._config.find_plan(service_id, plan_id)
        ip_filter = parse_ip_whitelist(self._ip_filter_source())
        name = self.service_name(instance_id)
        logger.info("Updating instance '%s' (Aiven service '%s') to plan %s", instance_id, name, plan.aiven_plan)
        try:
            self._client.update_service(
                name=name,
                plan=plan.aiven_plan,
                elasticsearch_version=plan.elasticsearch_version,
                ip_filter=ip_filter,
                timeout=timeout,
            )
        except PlanTransitionRejectedError as exc:
            raise PlanChangeNotSupportedError(instance_id, plan_id, exc.message) from exc
        return UpdateResult()

    def last_operation(
        self,
        instance_id: str,
        operation_data: str = "",
        timeout: Optional[float] = None,
    ) -> LastOperation:
        name = self.service_name(instance_id)
        status, updated_at = self._client.get_service_status(name, timeout=timeout)
        state, description = map_status(
            status,
            updated_at,
            window=timedelta(seconds=self._config.update_debounce_seconds),
        )
        logger.info("Instance '%s' (Aiven service '%s') is %s: %s", instance_id, name, state.value, description)
        return LastOperation(state=state, description=description)


def build_broker(config: BrokerConfig) -> AivenBroker:
    return AivenBroker.from_config(config)
