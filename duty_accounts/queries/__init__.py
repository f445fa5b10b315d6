"""Progress query package."""

from duty_accounts.queries.progress import (
    ProgressCounts,
    ProgressQuery,
    ProgressSummary,
    TehsilProgress,
)

__all__ = ["ProgressCounts", "ProgressQuery", "ProgressSummary", "TehsilProgress"]
