"""
Account, task and snapshot data models.

Pure data layer - no I/O. Records round-trip through the camelCase
layout of the data file via ``to_dict`` / ``from_dict``; keys this
module does not know about are carried along untouched.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger("drawtask.models")


class TaskStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_pending(self) -> bool:
        return self is TaskStatus.PENDING

    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @classmethod
    def parse(cls, value: Optional[str]) -> "TaskStatus":
        """Status from a stored record; unknown values load as pending"""
        if not value:
            return cls.PENDING
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown task status {value!r}, treating it as pending")
            return cls.PENDING


def utc_now() -> str:
    """ISO-8601 UTC timestamp, e.g. 2024-05-01T12:00:00.123456Z"""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# Dataclass attribute -> persisted key
_ACCOUNT_KEYS = {
    "id": "id",
    "name": "name",
    "provider": "provider",
    "api_key": "apiKey",
    "endpoint": "endpoint",
    "model_id": "modelId",
    "is_default": "isDefault",
    "usage_count": "usageCount",
    "success_count": "successCount",
    "failure_count": "failureCount",
    "created_at": "createdAt",
}

_TASK_KEYS = {
    "id": "id",
    "type": "type",
    "model": "model",
    "model_code": "modelCode",
    "prompt": "prompt",
    "count": "count",
    "reference_image": "referenceImage",
    "base_image": "baseImage",
    "ref_style_image": "refStyleImage",
    "status": "status",
    "results": "results",
    "error_message": "errorMessage",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


@dataclass
class Account:
    """Stored credentials and counters for one provider integration."""

    id: str
    name: str
    provider: str = ""
    api_key: str = ""
    endpoint: str = ""
    model_id: str = ""
    is_default: bool = False
    usage_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    created_at: str = ""
    extra: Dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> "Account":
        values = {attr: data[key] for attr, key in _ACCOUNT_KEYS.items() if key in data}
        values["extra"] = {k: v for k, v in data.items() if k not in _ACCOUNT_KEYS.values()}
        values.setdefault("id", "")
        values.setdefault("name", "")
        account = cls(**values)
        # Older records may carry nulls for optional fields
        account.endpoint = account.endpoint or ""
        account.model_id = account.model_id or ""
        account.usage_count = account.usage_count or 0
        account.success_count = account.success_count or 0
        account.failure_count = account.failure_count or 0
        account.is_default = bool(account.is_default)
        return account

    def to_dict(self) -> Dict:
        data = dict(self.extra)
        for attr, key in _ACCOUNT_KEYS.items():
            data[key] = getattr(self, attr)
        return data


@dataclass
class Task:
    """One generation request and its lifecycle outcome."""

    id: str
    type: str
    model: str
    prompt: str
    count: int = 1
    model_code: str = ""
    reference_image: Optional[str] = None
    base_image: Optional[str] = None
    ref_style_image: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    results: List[str] = field(default_factory=list)
    error_message: str = ""
    created_at: str = ""
    updated_at: str = ""
    extra: Dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> "Task":
        values = {attr: data[key] for attr, key in _TASK_KEYS.items() if key in data}
        values["extra"] = {k: v for k, v in data.items() if k not in _TASK_KEYS.values()}
        for required in ("id", "type", "model", "prompt"):
            values.setdefault(required, "")
        values["status"] = TaskStatus.parse(values.get("status"))
        values["results"] = list(values.get("results") or [])
        values["error_message"] = values.get("error_message") or ""
        values["count"] = values.get("count") or 1
        return cls(**values)

    def to_dict(self) -> Dict:
        data = dict(self.extra)
        for attr, key in _TASK_KEYS.items():
            data[key] = getattr(self, attr)
        data["status"] = self.status.value
        data["results"] = list(self.results)
        # Optional image inputs are omitted rather than written as null
        for key in ("referenceImage", "baseImage", "refStyleImage"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def generation_fields(self) -> Dict:
        """The caller-supplied fields a resubmission copies"""
        return {
            "type": self.type,
            "model": self.model,
            "prompt": self.prompt,
            "count": self.count,
            "referenceImage": self.reference_image,
            "baseImage": self.base_image,
            "refStyleImage": self.ref_style_image,
        }

    def complete(self, results: List[str]):
        """pending -> completed"""
        self._check_pending()
        self.status = TaskStatus.COMPLETED
        self.results = list(results)
        self.error_message = ""
        self.updated_at = utc_now()

    def fail(self, message: str):
        """pending -> failed"""
        self._check_pending()
        self.status = TaskStatus.FAILED
        self.results = []
        self.error_message = message or "Unknown error"
        self.updated_at = utc_now()

    def _check_pending(self):
        if self.status.is_terminal():
            raise ValueError(f"Task {self.id} is already {self.status.value}")


@dataclass
class Snapshot:
    """The complete persisted state: all accounts and all tasks."""

    accounts: List[Account] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> "Snapshot":
        return cls(
            accounts=[Account.from_dict(a) for a in data.get("apiAccounts") or []],
            tasks=[Task.from_dict(t) for t in data.get("tasks") or []],
        )

    def to_dict(self) -> Dict:
        return {
            "apiAccounts": [a.to_dict() for a in self.accounts],
            "tasks": [t.to_dict() for t in self.tasks],
        }

    def find_account(self, account_id: str) -> Optional[Account]:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

