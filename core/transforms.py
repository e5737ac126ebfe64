import json
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Iterable, List

import pandas as pd

from core.domain import Account, Category, Operation, OPERATION_TYPES
from core.errors import DuplicateIdError, InvalidAmountError, InvalidTypeError, MalformedRowError

logger = logging.getLogger(__name__)


class DataImporter(ABC):
    """Template for loading a ledger from some source.

    ``import_from`` reads, parses, checks and saves; subclasses fill in
    reading and parsing. Every row is checked before the first one is saved,
    so a bad document leaves the ledger untouched. Saving goes through the
    ledger's create calls so balances are maintained.
    """

    def __init__(self, ledger):
        self.ledger = ledger

    def import_from(self, source) -> Dict[str, int]:
        raw = self.read(source)
        data = self.parse(raw)
        rows = self.check(data)
        counts = self.save(rows)
        logger.info("Imported %s from %s", counts, source)
        return counts

    @abstractmethod
    def read(self, source) -> str:
        pass

    @abstractmethod
    def parse(self, raw: str) -> Dict[str, List[dict]]:
        pass

    def check(self, data: Dict[str, List[dict]]) -> Dict[str, List[tuple]]:
        rows = {
            "accounts": _convert(data, "accounts", lambda a: (int(a["id"]), str(a["name"]))),
            "categories": _convert(data, "categories", lambda c: (int(c["id"]), c["type"], str(c["name"]))),
            "operations": _convert(data, "operations", lambda o: (
                int(o["id"]),
                o["type"],
                int(o["account_id"]),
                int(o["amount"]),
                parse_date(o["date"]),
                o.get("description", ""),
                int(o["category_id"]),
            )),
        }

        _check_unique("Account", rows["accounts"], self.ledger.get_account)
        _check_unique("Category", rows["categories"], self.ledger.categories.get)
        _check_unique("Operation", rows["operations"], self.ledger.operations.get)

        for _, type, _ in rows["categories"]:
            if type not in OPERATION_TYPES:
                raise InvalidTypeError(type)
        for _, type, _, amount, _, _, _ in rows["operations"]:
            if type not in OPERATION_TYPES:
                raise InvalidTypeError(type)
            if amount < 0:
                raise InvalidAmountError(amount)
        return rows

    def save(self, rows: Dict[str, List[tuple]]) -> Dict[str, int]:
        for row in rows["accounts"]:
            self.ledger.create_account(*row)
        for row in rows["categories"]:
            self.ledger.create_category(*row)
        for row in rows["operations"]:
            self.ledger.create_operation(*row)
        return {kind: len(kind_rows) for kind, kind_rows in rows.items()}


def _convert(data: Dict[str, List[dict]], kind: str, convert) -> List[tuple]:
    converted = []
    for index, item in enumerate(data.get(kind, [])):
        try:
            converted.append(convert(item))
        except KeyError as e:
            raise MalformedRowError(kind, index, f"missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise MalformedRowError(kind, index, str(e)) from e
    return converted


def _check_unique(kind: str, rows: List[tuple], existing) -> None:
    seen = set()
    for row in rows:
        entity_id = row[0]
        if entity_id in seen or existing(entity_id) is not None:
            raise DuplicateIdError(kind, entity_id)
        seen.add(entity_id)


class JsonDataImporter(DataImporter):
    def read(self, source) -> str:
        with open(source, "r", encoding="utf-8") as f:
            return f.read()

    def parse(self, raw: str) -> Dict[str, List[dict]]:
        return json.loads(raw)


def parse_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class ExportVisitor(ABC):
    @abstractmethod
    def visit_account(self, account: Account) -> None:
        pass

    @abstractmethod
    def visit_category(self, category: Category) -> None:
        pass

    @abstractmethod
    def visit_operation(self, op: Operation) -> None:
        pass


class DictExportVisitor(ExportVisitor):
    """Collects every entity as a plain dict, in the shape the JSON importer reads."""

    def __init__(self):
        self.data: Dict[str, List[dict]] = {"accounts": [], "categories": [], "operations": []}

    def visit_account(self, account: Account) -> None:
        self.data["accounts"].append({"id": account.id, "name": account.name, "balance": account.balance})

    def visit_category(self, category: Category) -> None:
        self.data["categories"].append({"id": category.id, "type": category.type, "name": category.name})

    def visit_operation(self, op: Operation) -> None:
        self.data["operations"].append({
            "id": op.id,
            "type": op.type,
            "account_id": op.account_id,
            "amount": op.amount,
            "date": op.date.isoformat(),
            "description": op.description,
            "category_id": op.category_id,
        })

    def to_json(self) -> str:
        return json.dumps(self.data, ensure_ascii=False, indent=2)


def export_ledger(ledger, visitor: ExportVisitor) -> ExportVisitor:
    for account in ledger.list_accounts():
        visitor.visit_account(account)
    for category in ledger.list_categories():
        visitor.visit_category(category)
    for op in ledger.list_operations():
        visitor.visit_operation(op)
    return visitor


def to_dataframe(ops: Iterable[Operation]) -> pd.DataFrame:
    columns = ["id", "date", "type", "amount", "signed_amount", "account_id", "category_id", "description"]
    rows: List[Dict[str, Any]] = [
        {
            "id": op.id,
            "date": pd.Timestamp(op.date),
            "type": op.type,
            "amount": op.amount,
            "signed_amount": op.signed_amount,
            "account_id": op.account_id,
            "category_id": op.category_id,
            "description": op.description,
        }
        for op in ops
    ]
    return pd.DataFrame(rows, columns=columns)
