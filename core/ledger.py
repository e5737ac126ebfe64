import logging
import threading
from datetime import date
from typing import Dict, Optional, Tuple

from core.analytics import AnalyticsEngine
from core.domain import Operation, OPERATION_TYPES
from core.errors import DuplicateIdError, InvalidAmountError, InvalidTypeError
from core.events import EventBus, OPERATION_ADDED, OPERATION_REMOVED, BALANCE_ALERT
from core.stores import AccountStore, CategoryStore
from core.timing import timed_method

logger = logging.getLogger(__name__)


class OperationLedger:
    """Owns operations and keeps account balances consistent with them.

    Creating or deleting an operation and applying its balance delta happen
    under the account store's lock, so readers of either store never see an
    operation without its effect on the balance (or the reverse).
    """

    def __init__(
        self,
        accounts: AccountStore,
        bus: Optional[EventBus] = None,
        balance_alert_threshold: int = 0,
    ):
        self._accounts = accounts
        self._operations: Dict[int, Operation] = {}
        self._bus = bus
        self._threshold = balance_alert_threshold
        self.lock = accounts.lock

    def create_operation(
        self,
        operation_id: int,
        type: str,
        account_id: int,
        amount: int,
        date: date,
        description: str,
        category_id: int,
    ) -> Operation:
        with self.lock:
            if operation_id in self._operations:
                logger.warning("Rejected duplicate operation id %s", operation_id)
                raise DuplicateIdError("Operation", operation_id)
            if type not in OPERATION_TYPES:
                logger.warning("Rejected operation %s with type %r", operation_id, type)
                raise InvalidTypeError(type)
            if amount < 0:
                logger.warning("Rejected operation %s with amount %s", operation_id, amount)
                raise InvalidAmountError(amount)

            op = Operation(
                id=operation_id,
                type=type,
                account_id=account_id,
                amount=amount,
                date=date,
                description=description,
                category_id=category_id,
            )
            self._operations[operation_id] = op
            account = self._accounts.apply_delta(account_id, op.signed_amount)

        logger.debug("Recorded %s operation %s: %s on account %s", type, operation_id, amount, account_id)
        self._notify(OPERATION_ADDED, op, op.signed_amount, account)
        return op

    def delete_operation(self, operation_id: int) -> None:
        with self.lock:
            op = self._operations.pop(operation_id, None)
            if op is None:
                logger.debug("Delete of missing operation %s ignored", operation_id)
                return
            account = self._accounts.apply_delta(op.account_id, -op.signed_amount)

        logger.debug("Removed operation %s, reverted %s on account %s", operation_id, op.signed_amount, op.account_id)
        self._notify(OPERATION_REMOVED, op, -op.signed_amount, account)

    def get(self, operation_id: int) -> Optional[Operation]:
        with self.lock:
            return self._operations.get(operation_id)

    def list_all(self) -> Tuple[Operation, ...]:
        return self.snapshot()

    def snapshot(self) -> Tuple[Operation, ...]:
        """Immutable copy of the current operations, safe to aggregate without locks."""
        with self.lock:
            return tuple(self._operations.values())

    def _notify(self, name: str, op: Operation, delta: int, account) -> None:
        if self._bus is None:
            return
        payload = {"operation_id": op.id, "account_id": op.account_id, "delta": delta}
        self._bus.publish(name, payload)
        if account is not None and 0 < self._threshold and account.balance < self._threshold:
            self._bus.publish(BALANCE_ALERT, {
                "account_id": account.id,
                "balance": account.balance,
                "threshold": self._threshold,
            })


class Ledger:
    """Facade bundling the stores and analytics behind one object.

    This is what the UI and the import/export layer talk to.
    """

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        balance_alert_threshold: int = 0,
        timing_enabled: bool = False,
    ):
        self.accounts = AccountStore()
        self.categories = CategoryStore()
        self.operations = OperationLedger(self.accounts, bus, balance_alert_threshold)
        self.analytics = AnalyticsEngine(self.operations.snapshot)
        self.bus = bus
        self.timing_enabled = timing_enabled

    @classmethod
    def from_settings(cls, settings, bus: Optional[EventBus] = None) -> "Ledger":
        return cls(
            bus=bus,
            balance_alert_threshold=settings.balance_alert_threshold,
            timing_enabled=settings.timing_enabled,
        )

    # accounts
    @timed_method
    def create_account(self, account_id: int, name: str):
        return self.accounts.create(account_id, name)

    @timed_method
    def update_account(self, account_id: int, name: str) -> None:
        self.accounts.update(account_id, name)

    @timed_method
    def delete_account(self, account_id: int) -> None:
        self.accounts.delete(account_id)

    def get_account(self, account_id: int):
        return self.accounts.get(account_id)

    def list_accounts(self):
        return self.accounts.list_all()

    # categories
    @timed_method
    def create_category(self, category_id: int, type: str, name: str):
        return self.categories.create(category_id, type, name)

    @timed_method
    def update_category(self, category_id: int, name: str) -> None:
        self.categories.update(category_id, name)

    @timed_method
    def delete_category(self, category_id: int) -> None:
        self.categories.delete(category_id)

    def list_categories(self):
        return self.categories.list_all()

    # operations
    @timed_method
    def create_operation(self, operation_id, type, account_id, amount, date, description, category_id):
        return self.operations.create_operation(
            operation_id, type, account_id, amount, date, description, category_id
        )

    @timed_method
    def delete_operation(self, operation_id: int) -> None:
        self.operations.delete_operation(operation_id)

    def list_operations(self):
        return self.operations.list_all()

    # analytics
    def income_expense_difference(self, start: date, end: date) -> int:
        return self.analytics.income_expense_difference(start, end)

    def group_by_category(self, start: date, end: date) -> Dict[int, int]:
        return self.analytics.group_by_category(start, end)


class IdAllocator:
    """Hands out increasing ids per entity kind, the way the UI numbers new records."""

    def __init__(self):
        self._lock = threading.Lock()
        self._next: Dict[str, int] = {}

    def next_id(self, kind: str) -> int:
        with self._lock:
            value = self._next.get(kind, 1)
            self._next[kind] = value + 1
            return value

    def reserve(self, kind: str, used_id: int) -> None:
        """Make sure ids handed out later stay above ``used_id``."""
        with self._lock:
            self._next[kind] = max(self._next.get(kind, 1), used_id + 1)
