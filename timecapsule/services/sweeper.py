"""
Delivery sweep: dispatch due capsules once per cycle.

pending -> dispatching (claimed) -> sent | failed

`failed` is terminal here; nothing re-queues it. A crash between the
transport call and the status write leaves the row `dispatching` until its
lease expires, after which the next sweep picks it up again (at-least-once).
"""
import json
import os
import socket
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from flask import current_app

from timecapsule.errors import TransportFailure
from timecapsule.models.send_log import OUTCOME_SUCCESS, OUTCOME_FAIL
from . import capsules, clock
from .email import Transport, get_transport, send_capsule


@dataclass
class SweepReport:
    selected: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    sent_ids: list = field(default_factory=list)
    failed_ids: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return dict(selected=self.selected, sent=self.sent, failed=self.failed, skipped=self.skipped)


def worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def run_sweep(
    now: Optional[int] = None,
    transport: Optional[Transport] = None,
    batch_size: Optional[int] = None,
    lease_seconds: Optional[int] = None,
    now_fn: Optional[Callable[[], int]] = None,
) -> SweepReport:
    cfg = current_app.config
    if now_fn is None:
        # a pinned `now` also pins claim and sent timestamps
        now_fn = (lambda: now) if now is not None else clock.now
    now = now if now is not None else now_fn()
    transport = transport or get_transport()
    batch_size = batch_size or int(cfg.get("SWEEP_BATCH_SIZE", 50))
    lease_seconds = lease_seconds or int(cfg.get("SWEEP_LEASE_SECONDS", 300))
    worker = worker_id()

    report = SweepReport()
    due = capsules.select_due_pending(now, batch_size)
    report.selected = len(due)
    if not due:
        return report

    for capsule in due:
        # lease starts when the row is claimed, not when the sweep began
        if not capsules.claim(capsule.id, worker, now_fn(), lease_seconds):
            report.skipped += 1
            continue
        _dispatch_one(capsule, transport, now_fn, report)

    current_app.logger.info(json.dumps({"event": "sweep_done", "worker": worker, **report.to_dict()}))
    return report


def _dispatch_one(capsule, transport: Transport, now_fn: Callable[[], int], report: SweepReport) -> None:
    try:
        provider_id = send_capsule(capsule, transport)
    except TransportFailure as e:
        _record_failure(capsule.id, e.message, now_fn(), report)
        return
    except Exception as e:
        # render/template faults must not abort the rest of the batch
        current_app.logger.exception("capsule_dispatch_error id=%s", capsule.id)
        _record_failure(capsule.id, str(e) or type(e).__name__, now_fn(), report)
        return

    sent_at = now_fn()
    capsules.apply_dispatch_result(
        capsule.id,
        capsules.DispatchOutcome(ok=True, provider_email_id=provider_id, at=sent_at),
    )
    capsules.log_send(
        capsule_id=capsule.id,
        at=sent_at,
        status=OUTCOME_SUCCESS,
        event="api_sent",
        provider_email_id=provider_id or None,
    )
    report.sent += 1
    report.sent_ids.append(capsule.id)


def _record_failure(capsule_id: str, error: str, at: int, report: SweepReport) -> None:
    capsules.apply_dispatch_result(capsule_id, capsules.DispatchOutcome(ok=False, error=error, at=at))
    capsules.log_send(capsule_id=capsule_id, at=at, status=OUTCOME_FAIL, event="api_failed", error=error)
    report.failed += 1
    report.failed_ids.append(capsule_id)
