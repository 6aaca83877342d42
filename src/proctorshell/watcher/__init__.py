"""Filesystem activity classification and watching."""

from .activity import ActivityWatcher, WatcherState
from .classifier import (
    RAW_CHANGE_KINDS,
    ActivityClassifier,
    HistoryCursor,
    WatchRoots,
    read_last_line,
)

__all__ = [
    "ActivityClassifier",
    "ActivityWatcher",
    "HistoryCursor",
    "RAW_CHANGE_KINDS",
    "read_last_line",
    "WatcherState",
    "WatchRoots",
]
