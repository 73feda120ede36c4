"""
Advertising history window planning

Three states per customer, nothing finer:
  - no BackfillStatus row  -> full backfill window, recorded as completed
  - row, not completed     -> the same full backfill window again
  - row, completed         -> short incremental window

The sync passes record=False and calls record_backfill once the window's
performance rows are stored, so a failed first fetch is retried with the
full window on the next sync.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from marketplace_audit.config import get_settings
from marketplace_audit.models import BackfillStatus
from marketplace_audit.utils.logger import log

settings = get_settings()


@dataclass(frozen=True)
class DateWindow:
    date_from: date
    date_to: date
    mode: str  # backfill, incremental

    @property
    def is_backfill(self) -> bool:
        return self.mode == "backfill"

    def to_dict(self) -> dict:
        return {"from": self.date_from.isoformat(), "to": self.date_to.isoformat(), "mode": self.mode}


class BackfillPlanner:

    def __init__(
        self,
        db: Session,
        clock: Optional[Callable[[], datetime]] = None,
        backfill_days: Optional[int] = None,
        incremental_days: Optional[int] = None,
    ):
        self.db = db
        self._clock = clock or datetime.utcnow
        self.backfill_days = backfill_days or settings.ads_backfill_days
        self.incremental_days = incremental_days or settings.ads_incremental_days

    def _status(self, customer_id: int) -> Optional[BackfillStatus]:
        return self.db.query(BackfillStatus).filter(BackfillStatus.customer_id == customer_id).first()

    def plan_window(self, customer_id: int, record: bool = True) -> DateWindow:
        today = self._clock().date()
        status = self._status(customer_id)

        if status is None:
            window = DateWindow(today - timedelta(days=self.backfill_days), today, "backfill")
            log.info(f"Customer {customer_id}: first advertising sync, backfilling {self.backfill_days} days")
            if record:
                self.record_backfill(customer_id, window)
            return window

        if not status.backfill_completed:
            log.info(f"Customer {customer_id}: backfill not completed, requesting full window again")
            return DateWindow(today - timedelta(days=self.backfill_days), today, "backfill")

        return DateWindow(today - timedelta(days=self.incremental_days), today, "incremental")

    def record_backfill(self, customer_id: int, window: DateWindow) -> None:
        """Mark the backfill done after its rows were stored; incremental windows are ignored"""
        if not window.is_backfill:
            return
        status = self._status(customer_id)
        if status is None:
            status = BackfillStatus(customer_id=customer_id)
            self.db.add(status)
        status.backfill_completed = True
        status.oldest_date_fetched = window.date_from
        status.completed_at = self._clock()
        self.db.commit()
        log.info(f"Customer {customer_id}: backfill recorded from {window.date_from.isoformat()}")
