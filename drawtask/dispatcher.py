"""
Task dispatcher.

Submission creates a pending task synchronously and schedules its
dispatch as a detached asyncio task; the caller gets the pending record
back immediately. A dispatch:

1. counts the call against the account (``usageCount``)
2. calls the provider adapter in a worker thread
3. merges the outcome (task status, results, success/failure counter)
   into a freshly read snapshot

Dispatch failures never reach the submitter; they end up in the task's
``errorMessage`` and the account's ``failureCount``.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from .accounts import get_default_account
from .adapters import GenerationRequest, get_adapter, normalize_result
from .errors import DrawtaskError, ValidationError
from .models import Account, Snapshot, Task
from .store import SnapshotStore
from .tasks import TaskRepository, validate_task_fields

logger = logging.getLogger("drawtask.dispatcher")

NO_ACCOUNT_MESSAGE = "No API account configured"


class Dispatcher:
    """
    Runs tasks against providers.

    Responsibilities:
    - Task submission and resubmission (pending record + detached dispatch)
    - Provider invocation through the adapter registry
    - Task state transitions and account counters
    - Tracking in-flight dispatches so they can be awaited
    """

    def __init__(self, store: SnapshotStore, provider_defaults: Optional[Dict] = None,
                 request_timeout: float = 600):
        self.store = store
        self.provider_defaults = provider_defaults or {}
        self.request_timeout = request_timeout
        self._in_flight: Dict[str, asyncio.Task] = {}

    # ==================== Submission ====================

    async def submit(self, fields: Dict) -> Dict:
        """
        Create a pending task and start dispatching it.

        Raises:
            ValidationError: missing task fields or no account configured
        """
        def mutate(snapshot: Snapshot):
            validate_task_fields(fields)
            account = self._resolve_account(snapshot)
            task = TaskRepository.create_in(snapshot, fields)
            return task, account

        return await self._submit_with(mutate)

    async def resubmit(self, task_id: str, prompt_override: Optional[str] = None) -> Dict:
        """
        Clone an existing task into a new pending task and dispatch it.

        Raises:
            NotFoundError: source task does not exist
            ValidationError: no account configured
        """
        def mutate(snapshot: Snapshot):
            task = TaskRepository.resubmit_in(snapshot, task_id, prompt_override)
            account = self._resolve_account(snapshot)
            return task, account

        return await self._submit_with(mutate)

    async def _submit_with(self, mutate) -> Dict:
        task, account = await self.store.update(mutate)
        logger.info(f"Task {task.id} submitted with account {account.id} ({account.provider})")
        self.start_dispatch(task, account)
        return task.to_dict()

    @staticmethod
    def _resolve_account(snapshot: Snapshot) -> Account:
        account = get_default_account(snapshot.accounts)
        if account is None:
            raise ValidationError(NO_ACCOUNT_MESSAGE)
        return account

    # ==================== Dispatch ====================

    def start_dispatch(self, task: Task, account: Account) -> asyncio.Task:
        """Schedule a dispatch without awaiting it"""
        handle = asyncio.get_running_loop().create_task(
            self.dispatch(task, account), name=f"dispatch-{task.id}"
        )
        self._in_flight[task.id] = handle
        handle.add_done_callback(lambda _: self._in_flight.pop(task.id, None))
        return handle

    async def dispatch(self, task: Task, account: Account):
        """
        Execute one task against the account's provider.

        ``task`` and ``account`` are the copies taken at submission; every
        write merges into the current snapshot by id.
        """
        await self._record_usage(account.id)

        try:
            adapter = get_adapter(
                account.provider,
                defaults=self.provider_defaults.get(account.provider),
                timeout=self.request_timeout,
            )
            result = await asyncio.to_thread(
                adapter.generate, account, GenerationRequest.from_task(task)
            )
            images = normalize_result(result)
        except DrawtaskError as e:
            await self._record_failure(task.id, account.id, str(e))
            return
        except Exception as e:
            logger.exception(f"Unexpected error while dispatching task {task.id}")
            await self._record_failure(task.id, account.id, str(e) or type(e).__name__)
            return

        await self._record_success(task.id, account.id, images)

    async def _record_usage(self, account_id: str):
        def mutate(snapshot: Snapshot):
            account = snapshot.find_account(account_id)
            if account is not None:
                account.usage_count += 1

        await self._persist(mutate, f"usage of account {account_id}")

    async def _record_success(self, task_id: str, account_id: str, images: List[str]):
        def mutate(snapshot: Snapshot):
            account = snapshot.find_account(account_id)
            if account is not None:
                account.success_count += 1
            task = snapshot.find_task(task_id)
            if task is None:
                logger.warning(f"Task {task_id} was removed before it completed")
            elif task.status.is_terminal():
                logger.warning(f"Task {task_id} is already {task.status.value}, not completing")
            else:
                task.complete(images)

        logger.info(f"Task {task_id} completed with {len(images)} image(s)")
        await self._persist(mutate, f"completion of task {task_id}")

    async def _record_failure(self, task_id: str, account_id: str, message: str):
        def mutate(snapshot: Snapshot):
            account = snapshot.find_account(account_id)
            if account is not None:
                account.failure_count += 1
            task = snapshot.find_task(task_id)
            if task is None:
                logger.warning(f"Task {task_id} was removed before it failed")
            elif task.status.is_terminal():
                logger.warning(f"Task {task_id} is already {task.status.value}, not failing")
            else:
                task.fail(message)

        logger.error(f"Task {task_id} failed: {message}")
        await self._persist(mutate, f"failure of task {task_id}")

    async def _persist(self, mutate, what: str):
        # Nobody awaits a dispatch, so a failed write ends here
        try:
            await self.store.update(mutate)
        except DrawtaskError as e:
            logger.error(f"Could not persist {what}: {e}")

    # ==================== In-flight tracking ====================

    @property
    def in_flight(self) -> List[str]:
        return list(self._in_flight)

    async def wait(self, task_id: str) -> bool:
        """
        Wait for a task's dispatch to settle.

        Returns False if no dispatch is running for it.
        """
        handle = self._in_flight.get(task_id)
        if handle is None:
            return False
        await asyncio.shield(handle)
        return True

    async def drain(self):
        """Wait until every in-flight dispatch has settled"""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)
