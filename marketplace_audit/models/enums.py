"""Shared string enums for marketplace tables and reports."""
from enum import Enum


class DataType(str, Enum):
    """Kind of upstream payload stored in a raw snapshot or sync job"""
    LISTINGS = "listings"
    INVENTORY = "inventory"
    ORDERS = "orders"
    OFFER_INSIGHTS = "offer_insights"
    ADVERTISING = "advertising"
    CATALOG = "catalog"  # Catalog content + sales forecasts from the extended sync


class Category(str, Enum):
    """Scored business category"""
    CONTENT = "content"
    INVENTORY = "inventory"
    ORDERS = "orders"
    ADVERTISING = "advertising"
    RETURNS = "returns"
    PERFORMANCE = "performance"


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncType(str, Enum):
    MAIN = "main"
    COMPLETE = "complete"
    EXTENDED = "extended"


class PhaseStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"
    NO_DATA = "no_data"
    JOB_SUBMITTED = "job_submitted"


class SearchType(str, Enum):
    SEARCH = "SEARCH"
    BROWSE = "BROWSE"
