import logging
import threading
from dataclasses import replace
from typing import Dict, Optional, Tuple

from core.domain import Account, Category, OPERATION_TYPES
from core.errors import DuplicateIdError, InvalidTypeError

logger = logging.getLogger(__name__)


class AccountStore:
    """Owns bank accounts and their balances.

    Balances change only through ``apply_delta``, which is reserved for the
    operation ledger. ``lock`` is re-entrant so the ledger can hold it across
    an operation change and the matching balance update.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._accounts: Dict[int, Account] = {}

    def create(self, account_id: int, name: str) -> Account:
        with self.lock:
            if account_id in self._accounts:
                logger.warning("Rejected duplicate account id %s", account_id)
                raise DuplicateIdError("Account", account_id)
            account = Account(id=account_id, name=name, balance=0)
            self._accounts[account_id] = account
        logger.debug("Created account %s (%s)", account_id, name)
        return account

    def update(self, account_id: int, name: str) -> None:
        with self.lock:
            account = self._accounts.get(account_id)
            if account is None:
                logger.debug("Update of missing account %s ignored", account_id)
                return
            self._accounts[account_id] = replace(account, name=name)

    def delete(self, account_id: int) -> None:
        with self.lock:
            if self._accounts.pop(account_id, None) is not None:
                logger.debug("Deleted account %s", account_id)

    def get(self, account_id: int) -> Optional[Account]:
        with self.lock:
            return self._accounts.get(account_id)

    def list_all(self) -> Tuple[Account, ...]:
        with self.lock:
            return tuple(self._accounts.values())

    def apply_delta(self, account_id: int, delta: int) -> Optional[Account]:
        # dangling account references are tolerated
        with self.lock:
            account = self._accounts.get(account_id)
            if account is None:
                logger.debug("Balance delta %s for missing account %s skipped", delta, account_id)
                return None
            updated = replace(account, balance=account.balance + delta)
            self._accounts[account_id] = updated
            return updated


class CategoryStore:
    def __init__(self):
        self.lock = threading.RLock()
        self._categories: Dict[int, Category] = {}

    def create(self, category_id: int, type: str, name: str) -> Category:
        with self.lock:
            if category_id in self._categories:
                logger.warning("Rejected duplicate category id %s", category_id)
                raise DuplicateIdError("Category", category_id)
            if type not in OPERATION_TYPES:
                logger.warning("Rejected category %s with type %r", category_id, type)
                raise InvalidTypeError(type)
            category = Category(id=category_id, type=type, name=name)
            self._categories[category_id] = category
        logger.debug("Created %s category %s (%s)", type, category_id, name)
        return category

    def update(self, category_id: int, name: str) -> None:
        """Rename a category. Its type never changes."""
        with self.lock:
            category = self._categories.get(category_id)
            if category is None:
                logger.debug("Update of missing category %s ignored", category_id)
                return
            self._categories[category_id] = replace(category, name=name)

    def delete(self, category_id: int) -> None:
        with self.lock:
            if self._categories.pop(category_id, None) is not None:
                logger.debug("Deleted category %s", category_id)

    def get(self, category_id: int) -> Optional[Category]:
        with self.lock:
            return self._categories.get(category_id)

    def list_all(self) -> Tuple[Category, ...]:
        with self.lock:
            return tuple(self._categories.values())
