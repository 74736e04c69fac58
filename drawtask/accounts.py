"""
Account registry: CRUD over provider credentials.

At most one account is flagged ``isDefault``; flagging one clears the
flag on every other account in the same store update.
"""

import logging
import uuid
from typing import Dict, List, Optional

from .adapters import is_supported_provider
from .errors import NotFoundError, ValidationError
from .models import Account, Snapshot, utc_now
from .store import SnapshotStore

logger = logging.getLogger("drawtask.accounts")

MASK = "****"
MASK_VISIBLE_CHARS = 4


def mask_api_key(api_key: Optional[str]) -> str:
    """
    Hide all but the first and last four characters of an API key.

    Keys shorter than eight characters are masked entirely so no
    character is revealed twice; empty keys stay empty.
    """
    if not api_key:
        return ""
    if len(api_key) < MASK_VISIBLE_CHARS * 2:
        return MASK
    return api_key[:MASK_VISIBLE_CHARS] + MASK + api_key[-MASK_VISIBLE_CHARS:]


def generate_account_id() -> str:
    return "acc_" + str(uuid.uuid4())


def get_default_account(accounts: List[Account]) -> Optional[Account]:
    """
    The account flagged as default, else the first account, else None.

    Falling back to the first account when nothing is flagged is
    deliberate: a single configured account works without being marked.
    """
    for account in accounts:
        if account.is_default:
            return account
    return accounts[0] if accounts else None


def _clear_defaults(snapshot: Snapshot):
    for account in snapshot.accounts:
        account.is_default = False


def _masked(account: Account) -> Dict:
    data = account.to_dict()
    data["apiKey"] = mask_api_key(account.api_key)
    return data


class AccountRegistry:
    """Account CRUD layered on the snapshot store."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    async def list(self) -> List[Dict]:
        snapshot = await self.store.read()
        return [_masked(a) for a in snapshot.accounts]

    async def get_default_account(self) -> Optional[Account]:
        snapshot = await self.store.read()
        return get_default_account(snapshot.accounts)

    async def add(self, fields: Dict) -> Dict:
        name = fields.get("name")
        api_key = fields.get("apiKey")

        errors = []
        if not name:
            errors.append("name is required")
        if not api_key:
            errors.append("apiKey is required")
        if errors:
            raise ValidationError("Account name and API key are required", errors)

        provider = fields.get("provider") or ""
        if not is_supported_provider(provider):
            logger.warning(f"Account {name!r} uses unsupported provider {provider!r}")

        account = Account(
            id=generate_account_id(),
            name=name,
            provider=provider,
            api_key=api_key,
            endpoint=fields.get("endpoint") or "",
            model_id=fields.get("modelId") or "",
            is_default=bool(fields.get("isDefault")),
            created_at=utc_now(),
        )

        def mutate(snapshot: Snapshot):
            if account.is_default:
                _clear_defaults(snapshot)
            snapshot.accounts.append(account)

        await self.store.update(mutate)
        logger.info(f"Added account {account.id} ({account.provider or 'no provider'})")
        return _masked(account)

    async def update(self, account_id: str, fields: Dict) -> Dict:
        def mutate(snapshot: Snapshot) -> Account:
            account = snapshot.find_account(account_id)
            if account is None:
                raise NotFoundError("Account not found", "account", account_id)

            if fields.get("isDefault"):
                _clear_defaults(snapshot)

            # Empty strings do not wipe identity or credentials
            if fields.get("name"):
                account.name = fields["name"]
            if fields.get("provider"):
                account.provider = fields["provider"]
            if fields.get("apiKey"):
                account.api_key = fields["apiKey"]
            if fields.get("endpoint") is not None:
                account.endpoint = fields["endpoint"]
            if fields.get("modelId") is not None:
                account.model_id = fields["modelId"]
            if fields.get("isDefault") is not None:
                account.is_default = bool(fields["isDefault"])
            return account

        account = await self.store.update(mutate)
        logger.info(f"Updated account {account_id}")
        return _masked(account)

    async def remove(self, account_id: str):
        def mutate(snapshot: Snapshot):
            remaining = [a for a in snapshot.accounts if a.id != account_id]
            if len(remaining) == len(snapshot.accounts):
                raise NotFoundError("Account not found", "account", account_id)
            snapshot.accounts = remaining

        await self.store.update(mutate)
        logger.info(f"Removed account {account_id}")

    async def set_default(self, account_id: str) -> Dict:
        def mutate(snapshot: Snapshot) -> Account:
            account = snapshot.find_account(account_id)
            if account is None:
                raise NotFoundError("Account not found", "account", account_id)
            _clear_defaults(snapshot)
            account.is_default = True
            return account

        account = await self.store.update(mutate)
        logger.info(f"Account {account_id} is now the default")
        return _masked(account)
