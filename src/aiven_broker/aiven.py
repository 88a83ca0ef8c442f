"""Aiven REST API client used by the broker."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Sequence, Union
from urllib.parse import quote

import requests

from .http import UnexpectedResponseError, error_message, parse_json

logger = logging.getLogger(__name__)

SERVICE_TYPE = "elasticsearch"


class ServiceStatus(str, Enum):
    """Service states reported by Aiven."""

    RUNNING = "RUNNING"
    REBUILDING = "REBUILDING"
    REBALANCING = "REBALANCING"
    POWEROFF = "POWEROFF"

    @classmethod
    def coerce(cls, value: str) -> Union["ServiceStatus", str]:
        """Return the matching member, or the raw value when Aiven reports something new."""
        try:
            return cls(value)
        except ValueError:
            return value


@dataclass(slots=True)
class AivenAPIError(RuntimeError):
    """Raised when Aiven rejects a request."""

    status_code: int
    method: str
    url: str
    message: str

    def __str__(self) -> str:
        return f"Aiven {self.method} {self.url} failed (status {self.status_code}): {self.message}"


class ServiceNotFoundError(AivenAPIError):
    """The addressed service does not exist in the project."""


class PlanTransitionRejectedError(AivenAPIError):
    """Aiven refused to move the service to the requested plan."""


class AivenClient(Protocol):
    """Calls the broker needs from Aiven. Implementations must be safe for concurrent use."""

    def create_service(
        self,
        name: str,
        cloud: str,
        plan: str,
        service_type: str,
        elasticsearch_version: str,
        ip_filter: Sequence[str],
        timeout: Optional[float] = None,
    ) -> None: ...

    def delete_service(self, name: str, timeout: Optional[float] = None) -> None: ...

    def update_service(
        self,
        name: str,
        plan: str,
        elasticsearch_version: str,
        ip_filter: Sequence[str],
        timeout: Optional[float] = None,
    ) -> None: ...

    def create_service_user(self, name: str, username: str, timeout: Optional[float] = None) -> str: ...

    def delete_service_user(self, name: str, username: str, timeout: Optional[float] = None) -> None: ...

    def get_service_connection_details(self, name: str, timeout: Optional[float] = None) -> tuple[str, str]: ...

    def get_service_status(
        self, name: str, timeout: Optional[float] = None
    ) -> tuple[Union[ServiceStatus, str], datetime]: ...


def _user_config(elasticsearch_version: str, ip_filter: Sequence[str]) -> Dict[str, Any]:
    user_config: Dict[str, Any] = {"elasticsearch_version": elasticsearch_version}
    if ip_filter:
        user_config["ip_filter"] = list(ip_filter)
    return user_config


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class HttpAivenClient:
    """Talks to the Aiven v1 API for a single project."""

    def __init__(self, base_url: str, api_token: str, project: str, timeout: float = 60.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._project = project
        self._timeout = timeout

    def create_service(
        self,
        name: str,
        cloud: str,
        plan: str,
        service_type: str,
        elasticsearch_version: str,
        ip_filter: Sequence[str],
        timeout: Optional[float] = None,
    ) -> None:
        body = {
            "cloud": cloud,
            "plan": plan,
            "service_name": name,
            "service_type": service_type,
            "user_config": _user_config(elasticsearch_version, ip_filter),
        }
        logger.info("Creating Aiven service '%s' on plan '%s' in '%s'", name, plan, cloud)
        response = self._request("POST", self._service_path(), json=body, timeout=timeout)
        self._check(response)

    def delete_service(self, name: str, timeout: Optional[float] = None) -> None:
        logger.info("Deleting Aiven service '%s'", name)
        response = self._request("DELETE", self._service_path(name), timeout=timeout)
        if response.status_code == 404:
            raise ServiceNotFoundError(404, "DELETE", self._url(self._service_path(name)), error_message(response))
        self._check(response)

    def update_service(
        self,
        name: str,
        plan: str,
        elasticsearch_version: str,
        ip_filter: Sequence[str],
        timeout: Optional[float] = None,
    ) -> None:
        body = {
            "plan": plan,
            "user_config": _user_config(elasticsearch_version, ip_filter),
        }
        logger.info("Updating Aiven service '%s' to plan '%s'", name, plan)
        response = self._request("PUT", self._service_path(name), json=body, timeout=timeout)
        if response.status_code == 400:
            message = error_message(response)
            logger.error("Aiven rejected update of '%s': %s", name, message)
            raise PlanTransitionRejectedError(400, "PUT", self._url(self._service_path(name)), message)
        self._check(response)

    def create_service_user(self, name: str, username: str, timeout: Optional[float] = None) -> str:
        logger.info("Creating user '%s' on Aiven service '%s'", username, name)
        response = self._request(
            "POST",
            f"{self._service_path(name)}/user",
            json={"username": username},
            timeout=timeout,
        )
        self._check(response)
        payload = parse_json(response)
        try:
            return payload["user"]["password"]
        except (KeyError, TypeError) as exc:
            raise UnexpectedResponseError(
                status_code=response.status_code,
                url=self._url(f"{self._service_path(name)}/user"),
                body_preview="<response missing user.password>",
            ) from exc

    def delete_service_user(self, name: str, username: str, timeout: Optional[float] = None) -> None:
        logger.info("Deleting user '%s' from Aiven service '%s'", username, name)
        response = self._request(
            "DELETE",
            f"{self._service_path(name)}/user/{quote(username, safe='')}",
            timeout=timeout,
        )
        self._check(response)

    def get_service_connection_details(self, name: str, timeout: Optional[float] = None) -> tuple[str, str]:
        service = self._get_service(name, timeout)
        params = service.get("service_uri_params") or {}
        host = params.get("host")
        port = params.get("port")
        if not host or not port:
            raise UnexpectedResponseError(
                status_code=200,
                url=self._url(self._service_path(name)),
                body_preview="<service has no connection parameters yet>",
            )
        return str(host), str(port)

    def get_service_status(
        self, name: str, timeout: Optional[float] = None
    ) -> tuple[Union[ServiceStatus, str], datetime]:
        service = self._get_service(name, timeout)
        try:
            state = service["state"]
            updated_time = _parse_timestamp(service["updated_time"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UnexpectedResponseError(
                status_code=200,
                url=self._url(self._service_path(name)),
                body_preview="<service missing state or updated_time>",
            ) from exc
        return ServiceStatus.coerce(state), updated_time

    def _get_service(self, name: str, timeout: Optional[float]) -> Dict[str, Any]:
        response = self._request("GET", self._service_path(name), timeout=timeout)
        self._check(response)
        payload = parse_json(response)
        service = payload.get("service") if isinstance(payload, dict) else None
        if not isinstance(service, dict):
            raise UnexpectedResponseError(
                status_code=response.status_code,
                url=self._url(self._service_path(name)),
                body_preview="<response missing service>",
            )
        return service

    def _check(self, response: requests.Response) -> None:
        if response.status_code < 400:
            return
        method = response.request.method if response.request else "?"
        url = response.request.url if response.request else "<unknown>"
        message = error_message(response)
        logger.error("Aiven call %s %s failed (%s): %s", method, url, response.status_code, message)
        raise AivenAPIError(response.status_code, method or "?", url or "<unknown>", message)

    def _service_path(self, name: str | None = None) -> str:
        path = f"/v1/project/{self._project}/service"
        if name:
            path = f"{path}/{name}"
        return path

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"aivenv1 {self._api_token}"
        headers.setdefault("Content-Type", "application/json")
        headers.setdefault("Accept", "application/json")
        return requests.request(
            method,
            self._url(path),
            headers=headers,
            timeout=timeout if timeout is not None else self._timeout,
            **kwargs,
        )
