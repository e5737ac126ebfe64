from dataclasses import dataclass
from typing import Any, Callable, Iterable

from core.domain import Account, Category, OPERATION_TYPES


@dataclass(frozen=True)
class Some:
    value: Any

    def map(self, f: Callable[[Any], Any]) -> "Some":
        return Some(f(self.value))

    def get_or_else(self, default):
        return self.value

    def is_some(self) -> bool:
        return True


@dataclass(frozen=True)
class Nothing:
    def map(self, f: Callable[[Any], Any]) -> "Nothing":
        return self

    def get_or_else(self, default):
        return default

    def is_some(self) -> bool:
        return False


# result of a check: Right carries the accepted value, Left an error dict
@dataclass(frozen=True)
class Right:
    value: Any

    def is_right(self) -> bool:
        return True

    def get_error(self):
        raise ValueError("Cannot get error from Right")


@dataclass(frozen=True)
class Left:
    error: dict

    def is_right(self) -> bool:
        return False

    def get_error(self) -> dict:
        return self.error


def safe_account(accs: Iterable[Account], account_id: int) -> "Some | Nothing":
    for acc in accs:
        if acc.id == account_id:
            return Some(acc)
    return Nothing()


def safe_category(cats: Iterable[Category], category_id: int) -> "Some | Nothing":
    for cat in cats:
        if cat.id == category_id:
            return Some(cat)
    return Nothing()


def validate_operation_refs(
    op_type: str,
    account_id: int,
    category_id: int,
    accs: tuple[Account, ...],
    cats: tuple[Category, ...],
    require_matching_type: bool = False,
) -> "Right | Left":
    """Strict checks the ledger itself does not make.

    The ledger accepts operations pointing at missing accounts or categories;
    callers that want integrity run this first and only create the
    operation on ``Right``.
    """
    if op_type not in OPERATION_TYPES:
        return Left({
            "error": "invalid_type",
            "message": f"Operation type {op_type!r} is not income or expense",
        })

    if not safe_account(accs, account_id).is_some():
        return Left({
            "error": "account_not_found",
            "message": f"Account with ID {account_id} does not exist",
            "account_id": account_id
        })

    category = safe_category(cats, category_id)
    if not category.is_some():
        return Left({
            "error": "category_not_found",
            "message": f"Category with ID {category_id} does not exist",
            "category_id": category_id
        })

    cat = category.get_or_else(None)
    if require_matching_type and cat.type != op_type:
        return Left({
            "error": "category_type_mismatch",
            "message": f"{cat.type.capitalize()} category {cat.name} cannot hold {op_type} operations",
            "category_type": cat.type,
        })

    return Right({"type": op_type, "account_id": account_id, "category_id": category_id})
