"""Result types returned by the broker lifecycle operations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict
from urllib.parse import quote

from .status import LastOperationState

URI_SCHEME = "https"


@dataclass(slots=True)
class ProvisionResult:
    dashboard_url: str = ""
    operation_data: str = ""


@dataclass(slots=True)
class DeprovisionResult:
    """Outcome of a deprovision call.

    ``instance_gone`` is set when Aiven reported the service as already
    absent; callers should treat that as success.
    """

    operation_data: str = ""
    instance_gone: bool = False


@dataclass(slots=True)
class UpdateResult:
    operation_data: str = ""


@dataclass(slots=True)
class LastOperation:
    state: LastOperationState
    description: str


@dataclass(slots=True)
class Credentials:
    """Connection details handed to an application bound to an instance."""

    host: str
    port: str
    user: str
    password: str

    @property
    def uri(self) -> str:
        userinfo = f"{quote(self.user, safe='')}:{quote(self.password, safe='')}"
        return f"{URI_SCHEME}://{userinfo}@{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_uri": self.uri,
            "service_uri_params": {
                "host": self.host,
                "port": self.port,
                "user": self.user,
                "password": self.password,
            },
        }


@dataclass(slots=True)
class Binding:
    credentials: Credentials
