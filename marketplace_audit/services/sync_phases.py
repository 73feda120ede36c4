"""
Phase supervisor for marketplace syncs

A sync is a list of steps; each step is one phase or a group of phases that
touch disjoint upstream resources and run concurrently. Every phase is
isolated: whatever it raises rolls back the shared session and becomes a
'failed' PhaseResult; the next step still runs. Raising PhaseSkipped
reports 'skipped' instead.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union
import asyncio
import time

from sqlalchemy.orm import Session

from marketplace_audit.models.enums import PhaseStatus
from marketplace_audit.utils.logger import sync_logger


class PhaseSkipped(Exception):
    """Raised by a phase that deliberately did nothing (e.g. no credentials)"""


@dataclass
class SyncPhase:
    name: str
    run: Callable[[], Awaitable[Optional[Dict[str, Any]]]]


@dataclass
class PhaseResult:
    name: str
    status: str = PhaseStatus.OK.value
    detail: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status, **self.detail}
        if self.error:
            data["error"] = self.error
        return data


Step = Union[SyncPhase, Sequence[SyncPhase]]


class PhaseSupervisor:
    """Runs phases in order for one customer and collects their results"""

    def __init__(self, customer_id: int, sync_type: str, db: Optional[Session] = None):
        self.customer_id = customer_id
        self.sync_type = sync_type
        self.db = db
        self.results: Dict[str, PhaseResult] = {}
        self.log = sync_logger(customer_id, sync_type)

    async def run_phase(self, phase: SyncPhase) -> PhaseResult:
        start = time.monotonic()
        result = PhaseResult(name=phase.name)
        self.log.info(f"{phase.name} started")
        try:
            detail = dict(await phase.run() or {})
            result.status = detail.pop("status", PhaseStatus.OK.value)
            result.detail = detail
        except PhaseSkipped as e:
            result.status = PhaseStatus.SKIPPED.value
            result.detail = {"note": str(e)}
        except Exception as e:
            if self.db is not None:
                self.db.rollback()
            result.status = PhaseStatus.FAILED.value
            result.error = str(e)
            self.log.error(f"{phase.name} failed: {str(e)}")
        result.duration_seconds = time.monotonic() - start
        self.log.info(f"{phase.name} {result.status} in {result.duration_seconds:.2f}s")
        self.results[phase.name] = result
        return result

    async def run(self, steps: Sequence[Step]) -> Dict[str, PhaseResult]:
        for step in steps:
            if isinstance(step, SyncPhase):
                await self.run_phase(step)
            else:
                await asyncio.gather(*(self.run_phase(phase) for phase in step))
        return self.results

    def overall_status(self) -> str:
        """ok when nothing failed, failed when everything failed, partial otherwise"""
        statuses = [r.status for r in self.results.values()]
        failed = statuses.count(PhaseStatus.FAILED.value)
        if failed == 0:
            return "ok"
        if failed == len(statuses):
            return "failed"
        return "partial"

    def report(self) -> Dict[str, Any]:
        return {name: result.to_dict() for name, result in self.results.items()}
