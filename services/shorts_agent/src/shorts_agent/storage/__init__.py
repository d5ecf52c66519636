"""File-backed stores under the data directory."""

from .jobs import JobStore
from .metrics import MetricsStore
from .quota import QuotaStore
from .runs import RunStore

__all__ = ["JobStore", "MetricsStore", "QuotaStore", "RunStore"]
