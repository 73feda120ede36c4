"""
Sync bookkeeping models

Async export jobs, advertising backfill state and per-run sync reports.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, JSON, Boolean, Text, ForeignKey
from datetime import datetime

from marketplace_audit.models.base import Base


class SyncJob(Base):
    """
    An asynchronous bol.com export job (submit -> poll -> terminal)

    Created when an export is submitted; only the polling phase mutates it.
    Terminal once status leaves 'pending'.
    """
    __tablename__ = "marketplace_sync_jobs"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False, index=True)
    data_type = Column(String, nullable=False)  # listings

    process_status_id = Column(String, nullable=True)  # bol.com processStatusId
    entity_id = Column(String, nullable=True)  # bol.com entityId, set on completion

    status = Column(String, nullable=False, default="pending", index=True)  # pending, completed, failed
    attempts = Column(Integer, nullable=False, default=0)

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)


class BackfillStatus(Base):
    """
    Advertising history backfill state, one row per customer

    Read to decide the next run's date window; never deleted.
    """
    __tablename__ = "marketplace_backfill_status"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    backfill_completed = Column(Boolean, nullable=False, default=False)
    oldest_date_fetched = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)


class SyncRun(Base):
    """
    One orchestrator run (main / complete / extended) and its report
    """
    __tablename__ = "marketplace_sync_runs"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False, index=True)
    sync_type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)  # ok, partial, failed, skipped
    report = Column(JSON, nullable=True)

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)
