"""
Task repository: CRUD, filtering and resubmission over task records.
"""

import copy
import logging
from typing import Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .models import Snapshot, Task, TaskStatus, parse_timestamp, utc_now
from .store import SnapshotStore

logger = logging.getLogger("drawtask.tasks")

TASK_ID_PREFIX = "TASK-"
REQUIRED_TASK_FIELDS = ("type", "model", "prompt")


def format_task_id(number: int) -> str:
    return f"{TASK_ID_PREFIX}{number:06d}"


def next_task_id(tasks: List[Task]) -> str:
    """
    Sequential id derived from the current task count.

    Deleting tasks shrinks the count, so the derived id may already be
    taken; the counter then advances to the first free number.
    """
    taken = {t.id for t in tasks}
    number = len(tasks) + 1
    while format_task_id(number) in taken:
        number += 1
    return format_task_id(number)


def validate_task_fields(fields: Dict):
    missing = [name for name in REQUIRED_TASK_FIELDS if not fields.get(name)]
    if missing:
        raise ValidationError(
            "Missing required parameters",
            [f"{name} is required" for name in missing]
        )


def _parse_count(value) -> int:
    if value in (None, ""):
        return 1
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Invalid count", [f"count must be an integer, got {value!r}"]) from None
    if count < 1:
        raise ValidationError("Invalid count", ["count must be at least 1"])
    return count


def new_task(task_id: str, fields: Dict) -> Task:
    now = utc_now()
    return Task(
        id=task_id,
        type=fields["type"],
        model=fields["model"],
        model_code=fields["model"],
        prompt=fields["prompt"],
        count=_parse_count(fields.get("count")),
        reference_image=fields.get("referenceImage") or None,
        base_image=fields.get("baseImage") or None,
        ref_style_image=fields.get("refStyleImage") or None,
        status=TaskStatus.PENDING,
        results=[],
        error_message="",
        created_at=now,
        updated_at=now,
    )


def filter_tasks(tasks: List[Task], status: Optional[str] = None,
                 model: Optional[str] = None) -> List[Task]:
    """Exact-match filters, newest first"""
    selected = [
        t for t in tasks
        if (not status or t.status.value == status) and (not model or t.model == model)
    ]
    return sorted(selected, key=lambda t: (parse_timestamp(t.created_at), t.id), reverse=True)


class TaskRepository:
    """Task CRUD layered on the snapshot store."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    # ---- snapshot-level operations (used inside a store update) ----

    @staticmethod
    def create_in(snapshot: Snapshot, fields: Dict) -> Task:
        validate_task_fields(fields)
        task = new_task(next_task_id(snapshot.tasks), fields)
        snapshot.tasks.append(task)
        return task

    @staticmethod
    def resubmit_in(snapshot: Snapshot, task_id: str,
                    prompt_override: Optional[str] = None) -> Task:
        source = snapshot.find_task(task_id)
        if source is None:
            raise NotFoundError("Original task not found", "task", task_id)

        fields = source.generation_fields()
        if prompt_override:
            fields["prompt"] = prompt_override

        task = new_task(next_task_id(snapshot.tasks), fields)
        task.model_code = source.model_code or source.model
        task.extra = copy.deepcopy(source.extra)
        snapshot.tasks.append(task)
        return task

    # ---- store operations ----

    async def list(self, status: Optional[str] = None, model: Optional[str] = None) -> List[Dict]:
        snapshot = await self.store.read()
        return [t.to_dict() for t in filter_tasks(snapshot.tasks, status, model)]

    async def get(self, task_id: str) -> Dict:
        snapshot = await self.store.read()
        task = snapshot.find_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", "task", task_id)
        return task.to_dict()

    async def create(self, fields: Dict) -> Dict:
        task = await self.store.update(lambda snapshot: self.create_in(snapshot, fields))
        logger.info(f"Created task {task.id} ({task.type}/{task.model})")
        return task.to_dict()

    async def resubmit(self, task_id: str, prompt_override: Optional[str] = None) -> Dict:
        task = await self.store.update(
            lambda snapshot: self.resubmit_in(snapshot, task_id, prompt_override)
        )
        logger.info(f"Resubmitted task {task_id} as {task.id}")
        return task.to_dict()

    async def remove(self, task_id: str):
        def mutate(snapshot: Snapshot):
            remaining = [t for t in snapshot.tasks if t.id != task_id]
            if len(remaining) == len(snapshot.tasks):
                raise NotFoundError("Task not found", "task", task_id)
            snapshot.tasks = remaining

        await self.store.update(mutate)
        logger.info(f"Removed task {task_id}")
