"""
Drawtask

AI image-generation task manager: provider accounts, asynchronously
dispatched generation tasks and per-account usage statistics.
"""

from .accounts import AccountRegistry, mask_api_key
from .dispatcher import Dispatcher
from .store import SnapshotStore
from .tasks import TaskRepository

__version__ = "1.0.0"

__all__ = [
    "AccountRegistry",
    "Dispatcher",
    "SnapshotStore",
    "TaskRepository",
    "mask_api_key",
]
