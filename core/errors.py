class LedgerError(ValueError):
    """Base class for input rejected by the ledger."""


class DuplicateIdError(LedgerError):
    def __init__(self, kind: str, entity_id: int):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} with ID {entity_id} already exists")


class InvalidTypeError(LedgerError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Type must be 'income' or 'expense', got {value!r}")


class InvalidAmountError(LedgerError):
    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Amount must not be negative, got {amount}")


class MalformedRowError(LedgerError):
    def __init__(self, kind: str, index: int, reason: str):
        self.kind = kind
        self.index = index
        super().__init__(f"{kind}[{index}] is malformed: {reason}")
