from collections import defaultdict
from datetime import date
from typing import Callable, Dict, Iterable, Iterator, Tuple

from core.domain import Operation, INCOME, EXPENSE


def by_date_range(start: date, end: date):
    """Inclusive window filter: operations dated on either boundary pass."""
    def _filter(op: Operation) -> bool:
        return start <= op.date <= end

    return _filter


def by_type(type: str):
    def _filter(op: Operation) -> bool:
        return op.type == type

    return _filter


def by_category(category_id: int):
    def _filter(op: Operation) -> bool:
        return op.category_id == category_id

    return _filter


def iter_operations(
    ops: Iterable[Operation], pred: Callable[[Operation], bool]
) -> Iterator[Operation]:
    for op in ops:
        if pred(op):
            yield op


def income_expense_difference(ops: Iterable[Operation], start: date, end: date) -> int:
    """Income minus expense over ``[start, end]``.

    The sign comes from each operation's own type, never from its category.
    """
    in_window = tuple(iter_operations(ops, by_date_range(start, end)))
    income = sum(op.amount for op in in_window if op.type == INCOME)
    expense = sum(op.amount for op in in_window if op.type == EXPENSE)
    return income - expense


def group_by_category(ops: Iterable[Operation], start: date, end: date) -> Dict[int, int]:
    """Signed totals per category id over ``[start, end]``.

    Only categories with at least one operation in the window appear.
    """
    totals: Dict[int, int] = defaultdict(int)
    for op in iter_operations(ops, by_date_range(start, end)):
        totals[op.category_id] += op.signed_amount
    return dict(totals)


def account_balances(ops: Iterable[Operation]) -> Dict[int, int]:
    """Balances recomputed from history, keyed by account id."""
    balances: Dict[int, int] = defaultdict(int)
    for op in ops:
        balances[op.account_id] += op.signed_amount
    return dict(balances)


def top_categories(
    ops: Iterable[Operation], start: date, end: date, k: int
) -> Iterator[Tuple[int, int]]:
    # biggest spenders first, by expense volume
    totals: Dict[int, int] = defaultdict(int)
    for op in iter_operations(ops, by_date_range(start, end)):
        if op.type == EXPENSE:
            totals[op.category_id] += op.amount

    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    for category_id, total in ordered[: max(0, k)]:
        yield category_id, total


class AnalyticsEngine:
    """Read-only aggregations over a snapshot of the ledger's operations.

    snapshot: callable returning the current operations as an immutable
    sequence. Each query takes one snapshot and aggregates over it, so
    writers are never blocked for the duration of a report.
    """

    def __init__(self, snapshot: Callable[[], Tuple[Operation, ...]]):
        self._snapshot = snapshot

    def income_expense_difference(self, start: date, end: date) -> int:
        return income_expense_difference(self._snapshot(), start, end)

    def group_by_category(self, start: date, end: date) -> Dict[int, int]:
        return group_by_category(self._snapshot(), start, end)

    def account_balances(self) -> Dict[int, int]:
        return account_balances(self._snapshot())

    def top_categories(self, start: date, end: date, k: int = 5) -> list:
        return list(top_categories(self._snapshot(), start, end, k))

    def snapshot(self) -> Tuple[Operation, ...]:
        return self._snapshot()
