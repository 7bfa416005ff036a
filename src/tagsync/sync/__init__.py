"""Tag synchronization engine."""

from .decisions import decide_action
from .engine import ProgressCallback, SyncEngine
from .exporter import InventoryExporter, find_unexported_files, load_export
from .fetcher import AssetFetcher, FetchResult
from .models import InventoryEntry, SyncAction, SyncReport, TagOutcome, TagResult

__all__ = [
    "AssetFetcher",
    "FetchResult",
    "InventoryEntry",
    "InventoryExporter",
    "ProgressCallback",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "TagOutcome",
    "TagResult",
    "decide_action",
    "find_unexported_files",
    "load_export",
]
