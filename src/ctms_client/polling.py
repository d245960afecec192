from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from . import hal
from .client import CtmsClient
from .models import BulkCommandStatus, BulkResultEntry
from .observability import meta

log = logging.getLogger("ctms_client.polling")

INTERVAL_PER_ITEM_SECONDS = 0.3
MAX_INTERVAL_SECONDS = 10.0
MAX_POLLS = 21  # attempts 0..20

Sleep = Callable[[float], Awaitable[Any]]


class PollState(str, enum.Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    TIMED_OUT = "timed-out"


@dataclass
class BulkPollOutcome:
    state: PollState
    status: Dict[str, Any]
    polls: int
    succeeded: List[BulkResultEntry] = field(default_factory=list)
    failed: List[BulkResultEntry] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.state is PollState.COMPLETE

    @property
    def progress(self) -> Optional[int]:
        return BulkCommandStatus.model_validate(self.status).command.progress


def poll_interval(item_count: int) -> float:
    """Seconds to wait before each status poll: 300 ms per item, at most 10 s."""
    return min(item_count * INTERVAL_PER_ITEM_SECONDS, MAX_INTERVAL_SECONDS)


async def get_bulk_status(
    client: CtmsClient, bulk_command: Dict[str, Any], *, ref: Optional[str] = None
) -> Dict[str, Any]:
    command_id = BulkCommandStatus.model_validate(bulk_command).command.id
    url = hal.require_link_href(bulk_command, "self", ref=command_id or ref)
    log.debug(f"get status with id: {command_id}", extra=meta("bulk status", ref))
    return await client.get(url, action="bulk status", ref=ref)


async def await_completion(
    client: CtmsClient,
    bulk_command: Dict[str, Any],
    item_count: int,
    *,
    ref: Optional[str] = None,
    max_polls: int = MAX_POLLS,
    sleep: Sleep = asyncio.sleep,
) -> Optional[BulkPollOutcome]:
    """
    Polls the status of a submitted bulk command until it reports 100 %.

    Sleeps before every poll. When ``max_polls`` is used up without
    completion the last status is returned with state TIMED_OUT and a
    warning is logged; callers decide what an incomplete command means.
    Returns None without polling when the command targets no items.
    """
    if item_count <= 0:
        return None

    extra = meta("bulk command", ref)
    interval = poll_interval(item_count)
    status: Dict[str, Any] = bulk_command
    state = PollState.PENDING
    polls = 0

    for attempt in range(max_polls):
        await sleep(interval)
        status = await get_bulk_status(client, bulk_command, ref=ref)
        polls += 1
        command = BulkCommandStatus.model_validate(status).command
        log.debug(
            f"status poll {attempt} for command {command.id}: {command.progress or 0}%",
            extra=extra,
        )
        if command.progress == 100:
            state = PollState.COMPLETE
            log.debug(f"command {command.id} completed", extra=extra)
            break
    else:
        state = PollState.TIMED_OUT
        log.warning(
            f"bulk command did not finish within {polls} polls "
            f"({polls * interval:.1f}s)",
            extra=extra,
        )

    results = BulkCommandStatus.model_validate(status).results
    succeeded = [r for r in results if r.success]
    failed = [r for r in results if not r.success]
    if results:
        log.debug(
            f"succeeded: {len(succeeded)}, failed: {len(failed)}", extra=extra
        )
    for entry in failed:
        log.warning(
            f"{entry.error_message}", extra=meta("bulk command", entry.data)
        )

    return BulkPollOutcome(
        state=state, status=status, polls=polls, succeeded=succeeded, failed=failed
    )


__all__ = [
    "PollState",
    "BulkPollOutcome",
    "poll_interval",
    "get_bulk_status",
    "await_completion",
    "MAX_POLLS",
]
