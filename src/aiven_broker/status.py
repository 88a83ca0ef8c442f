"""Translation of Aiven service states into broker last-operation outcomes."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

from .aiven import ServiceStatus

UPDATE_DEBOUNCE = timedelta(seconds=60)


class LastOperationState(str, Enum):
    SUCCEEDED = "succeeded"
    IN_PROGRESS = "in progress"
    FAILED = "failed"


def map_status(
    status: Union[ServiceStatus, str],
    last_update: datetime,
    now: Optional[datetime] = None,
    window: timedelta = UPDATE_DEBOUNCE,
) -> tuple[LastOperationState, str]:
    """Map an Aiven status to a last-operation state and description.

    Aiven keeps reporting RUNNING for a short while after it accepts an
    update, so any status seen within ``window`` of ``last_update`` is
    reported as in progress.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if last_update > now - window:
        return LastOperationState.IN_PROGRESS, "Preparing to apply update"
    return describe_status(status)


def describe_status(status: Union[ServiceStatus, str]) -> tuple[LastOperationState, str]:
    """Map an Aiven status alone; unknown states are treated as in progress."""
    known = ServiceStatus.coerce(status.value if isinstance(status, ServiceStatus) else status)
    if known is ServiceStatus.RUNNING:
        return LastOperationState.SUCCEEDED, "Last operation succeeded"
    if known is ServiceStatus.REBUILDING:
        return LastOperationState.IN_PROGRESS, "Rebuilding"
    if known is ServiceStatus.REBALANCING:
        return LastOperationState.IN_PROGRESS, "Rebalancing"
    if known is ServiceStatus.POWEROFF:
        return LastOperationState.FAILED, "Last operation failed: service is powered off"
    return LastOperationState.IN_PROGRESS, f"Unknown state: {status}"
