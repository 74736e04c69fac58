"""
Usage statistics derived from the current snapshot.
"""

from typing import Dict

from .models import Snapshot, TaskStatus
from .store import SnapshotStore


def compute_stats(snapshot: Snapshot) -> Dict[str, int]:
    """
    Sum the account counters and count tasks by status.

    ``totalCalls == successCalls + failureCalls`` holds whenever no
    dispatch is in flight.
    """
    accounts = snapshot.accounts
    tasks = snapshot.tasks
    return {
        "totalCalls": sum(a.usage_count for a in accounts),
        "successCalls": sum(a.success_count for a in accounts),
        "failureCalls": sum(a.failure_count for a in accounts),
        "totalTasks": len(tasks),
        "completedTasks": sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
        "pendingTasks": sum(1 for t in tasks if t.status.is_pending()),
        "failedTasks": sum(1 for t in tasks if t.status == TaskStatus.FAILED),
    }


async def collect_stats(store: SnapshotStore) -> Dict[str, int]:
    return compute_stats(await store.read())
