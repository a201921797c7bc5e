from .compensation import TailCompensation
from .config import SyncSettings, load_sync_settings
from .jobs import LoadJobMonitor
from .models import BatchWindow, LoadJob, SyncMode, SyncPlan, SyncRequest, SyncResult, SyncState
from .planner import DeltaPlanner, plan_batches, watermark_text
from .progress import LoggingProgress, SyncProgress
from .runner import SyncOrchestrator, run_sync

__all__ = [
    "BatchWindow",
    "DeltaPlanner",
    "LoadJob",
    "LoadJobMonitor",
    "LoggingProgress",
    "SyncMode",
    "SyncOrchestrator",
    "SyncPlan",
    "SyncProgress",
    "SyncRequest",
    "SyncResult",
    "SyncSettings",
    "SyncState",
    "TailCompensation",
    "load_sync_settings",
    "plan_batches",
    "run_sync",
    "watermark_text",
]
