from dataclasses import dataclass
from datetime import date

INCOME = "income"
EXPENSE = "expense"
OPERATION_TYPES = (INCOME, EXPENSE)


@dataclass(frozen=True)
class Account:
    id: int
    name: str
    balance: int = 0  # minor currency units


@dataclass(frozen=True)
class Category:
    id: int
    type: str  # "income" or "expense", fixed at creation
    name: str


@dataclass(frozen=True)
class Operation:
    id: int
    type: str          # income / expense, independent of the category type
    account_id: int    # may point at a deleted account
    amount: int        # never negative, sign comes from type
    date: date
    description: str = ""
    category_id: int = 0

    @property
    def signed_amount(self) -> int:
        return self.amount if self.type == INCOME else -self.amount
