"""Client-side sync model for the task and event API."""

from daily_vibe.client.mirror import LocalMirror
from daily_vibe.client.sync import SyncError, TaskSyncModel

__all__ = ["LocalMirror", "SyncError", "TaskSyncModel"]
