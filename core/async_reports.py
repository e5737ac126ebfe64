import asyncio
import calendar
from datetime import date
from typing import Dict, List, Sequence, Tuple

from core.analytics import group_by_category, income_expense_difference
from core.domain import Operation


def month_window(month: str) -> Tuple[date, date]:
    """'2024-01' -> (2024-01-01, 2024-01-31)."""
    year, mon = (int(part) for part in month.split("-"))
    last_day = calendar.monthrange(year, mon)[1]
    return date(year, mon, 1), date(year, mon, last_day)


async def differences_by_month(ops: Sequence[Operation], months: List[str]) -> Dict[str, int]:
    """Compute income minus expense for each month in parallel.

    months: list of YYYY-MM strings (e.g., '2025-01')
    All months are computed over the same operations snapshot.
    """
    snapshot = tuple(ops)

    async def month_total(month: str) -> tuple[str, int]:
        start, end = month_window(month)
        total = income_expense_difference(snapshot, start, end)
        await asyncio.sleep(0)  # cooperate
        return month, total

    results = await asyncio.gather(*(month_total(m) for m in months))
    return {k: v for k, v in results}


async def groups_by_month(ops: Sequence[Operation], months: List[str]) -> Dict[str, Dict[int, int]]:
    snapshot = tuple(ops)

    async def month_groups(month: str) -> tuple[str, Dict[int, int]]:
        start, end = month_window(month)
        groups = group_by_category(snapshot, start, end)
        await asyncio.sleep(0)
        return month, groups

    results = await asyncio.gather(*(month_groups(m) for m in months))
    return {k: v for k, v in results}
