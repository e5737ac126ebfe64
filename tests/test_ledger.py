import threading
from datetime import date

import pytest

from core.errors import DuplicateIdError, InvalidAmountError, InvalidTypeError
from core.events import EventBus, OPERATION_ADDED, OPERATION_REMOVED, BALANCE_ALERT, check_balance_handler
from core.ledger import Ledger, IdAllocator, OperationLedger
from core.stores import AccountStore


def make_ledger():
    ledger = Ledger()
    ledger.create_account(1, "Main")
    ledger.create_category(1, "expense", "Food")
    return ledger


def test_main_scenario_balances_and_analytics():
    ledger = make_ledger()
    ledger.create_operation(1, "expense", 1, 500, date(2024, 1, 10), "Groceries", 1)
    assert ledger.get_account(1).balance == -500

    ledger.create_operation(2, "income", 1, 2000, date(2024, 1, 15), "Salary", 2)
    assert ledger.get_account(1).balance == 1500

    start, end = date(2024, 1, 1), date(2024, 1, 31)
    assert ledger.income_expense_difference(start, end) == 1500
    assert ledger.group_by_category(start, end) == {1: -500, 2: 2000}

    ledger.delete_operation(1)
    assert ledger.get_account(1).balance == 2000
    assert 1 not in ledger.group_by_category(start, end)


def test_create_then_delete_restores_balance():
    ledger = make_ledger()
    ledger.create_operation(1, "income", 1, 300, date(2024, 3, 1), "", 1)
    before = ledger.get_account(1).balance

    ledger.create_operation(2, "expense", 1, 1234, date(2024, 3, 2), "", 1)
    ledger.delete_operation(2)
    assert ledger.get_account(1).balance == before


def test_balance_matches_signed_sum_of_operations():
    ledger = make_ledger()
    ledger.create_account(2, "Savings")
    rows = [
        (1, "income", 1, 1000),
        (2, "expense", 1, 250),
        (3, "income", 2, 400),
        (4, "expense", 2, 900),
        (5, "expense", 1, 0),
        (6, "income", 1, 75),
    ]
    for op_id, op_type, acc_id, amount in rows:
        ledger.create_operation(op_id, op_type, acc_id, amount, date(2024, 5, op_id), "", 1)
    ledger.delete_operation(2)
    ledger.delete_operation(4)

    recomputed = ledger.analytics.account_balances()
    for acc in ledger.list_accounts():
        assert acc.balance == recomputed.get(acc.id, 0)
    assert ledger.get_account(1).balance == 1075
    assert ledger.get_account(2).balance == 400


def test_operation_with_missing_account_is_recorded():
    ledger = make_ledger()
    op = ledger.create_operation(1, "expense", 99, 100, date(2024, 1, 1), "", 7)
    assert op in ledger.list_operations()
    assert ledger.get_account(99) is None
    assert ledger.get_account(1).balance == 0

    ledger.delete_operation(1)
    assert ledger.list_operations() == ()


def test_delete_missing_operation_is_noop():
    ledger = make_ledger()
    ledger.delete_operation(5)
    ledger.create_operation(1, "income", 1, 10, date(2024, 1, 1), "", 1)
    ledger.delete_operation(1)
    ledger.delete_operation(1)
    assert ledger.get_account(1).balance == 0


def test_deleted_account_leaves_operations_dangling():
    ledger = make_ledger()
    ledger.create_operation(1, "income", 1, 500, date(2024, 1, 1), "", 1)
    ledger.delete_account(1)
    assert len(ledger.list_operations()) == 1

    ledger.delete_operation(1)
    assert ledger.list_operations() == ()


def test_duplicate_operation_id_leaves_state_untouched():
    ledger = make_ledger()
    ledger.create_operation(1, "income", 1, 500, date(2024, 1, 1), "", 1)
    with pytest.raises(DuplicateIdError):
        ledger.create_operation(1, "expense", 1, 200, date(2024, 1, 2), "", 1)
    assert ledger.get_account(1).balance == 500
    assert ledger.operations.get(1).type == "income"


def test_invalid_type_rejected():
    ledger = make_ledger()
    with pytest.raises(InvalidTypeError):
        ledger.create_operation(1, "transfer", 1, 500, date(2024, 1, 1), "", 1)
    assert ledger.list_operations() == ()
    assert ledger.get_account(1).balance == 0


def test_negative_amount_rejected():
    ledger = make_ledger()
    with pytest.raises(InvalidAmountError) as exc:
        ledger.create_operation(1, "income", 1, -5, date(2024, 1, 1), "", 1)
    assert exc.value.amount == -5
    assert ledger.list_operations() == ()


def test_operation_type_independent_of_category_type():
    ledger = make_ledger()
    ledger.create_operation(1, "income", 1, 800, date(2024, 1, 1), "refund", 1)
    assert ledger.get_account(1).balance == 800


def test_events_published_on_create_and_delete():
    bus = EventBus()
    seen = []
    bus.subscribe(OPERATION_ADDED, lambda e, p: seen.append((e.name, p)) or {})
    bus.subscribe(OPERATION_REMOVED, lambda e, p: seen.append((e.name, p)) or {})

    ledger = Ledger(bus=bus)
    ledger.create_account(1, "Main")
    ledger.create_operation(1, "expense", 1, 300, date(2024, 1, 1), "", 1)
    ledger.delete_operation(1)
    ledger.delete_operation(1)

    assert [name for name, _ in seen] == [OPERATION_ADDED, OPERATION_REMOVED]
    assert seen[0][1]["delta"] == -300
    assert seen[1][1]["delta"] == 300


def test_balance_alert_below_threshold():
    bus = EventBus()
    alerts = []

    def collect(event, payload):
        result = check_balance_handler(event, payload)
        if result:
            alerts.append(result)
        return result

    bus.subscribe(BALANCE_ALERT, collect)
    ledger = Ledger(bus=bus, balance_alert_threshold=1000)
    ledger.create_account(1, "Main")
    ledger.create_operation(1, "income", 1, 5000, date(2024, 1, 1), "", 1)
    assert alerts == []

    ledger.create_operation(2, "expense", 1, 4500, date(2024, 1, 2), "", 1)
    assert len(alerts) == 1
    assert alerts[0]["balance"] == 500


def test_balance_alert_only_published_below_threshold():
    bus = EventBus()
    raw = []
    bus.subscribe(BALANCE_ALERT, lambda event, payload: raw.append(payload) or {})

    ledger = Ledger(bus=bus, balance_alert_threshold=1000)
    ledger.create_account(1, "Main")
    ledger.create_operation(1, "income", 1, 5000, date(2024, 1, 1), "", 1)
    assert raw == []

    ledger.create_operation(2, "expense", 1, 4500, date(2024, 1, 2), "", 1)
    assert raw == [{"account_id": 1, "balance": 500, "threshold": 1000}]

    ledger.delete_operation(2)
    assert len(raw) == 1


def test_no_balance_alert_when_threshold_disabled():
    bus = EventBus()
    raw = []
    bus.subscribe(BALANCE_ALERT, lambda event, payload: raw.append(payload) or {})

    ledger = Ledger(bus=bus)
    ledger.create_account(1, "Main")
    ledger.create_operation(1, "expense", 1, 700, date(2024, 1, 1), "", 1)
    assert ledger.get_account(1).balance == -700
    assert raw == []


def test_readers_never_see_torn_state():
    accounts = AccountStore()
    accounts.create(1, "Main")
    ops = OperationLedger(accounts)
    done = threading.Event()
    mismatches = []
    reads = {"n": 0}

    def writer(offset):
        for i in range(300):
            op_id = offset + i
            ops.create_operation(op_id, "income" if i % 2 else "expense", 1, 7 + i, date(2024, 1, 1), "", 1)
            if i % 3 == 0:
                ops.delete_operation(op_id)

    def reader():
        while not done.is_set():
            with ops.lock:
                snapshot = ops.snapshot()
                balance = accounts.get(1).balance
            reads["n"] += 1
            total = sum(op.signed_amount for op in snapshot)
            if total != balance:
                mismatches.append((total, balance))

    reader_thread = threading.Thread(target=reader)
    reader_thread.start()
    writers = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
    for t in writers:
        t.start()
    for t in writers:
        t.join()
    done.set()
    reader_thread.join()

    assert reads["n"] > 0
    assert mismatches == []


def test_concurrent_writers_keep_balance_consistent():
    accounts = AccountStore()
    accounts.create(1, "Main")
    ops = OperationLedger(accounts)

    def worker(offset):
        for i in range(200):
            op_id = offset + i
            ops.create_operation(op_id, "income" if i % 2 else "expense", 1, 10, date(2024, 1, 1), "", 1)
            if i % 3 == 0:
                ops.delete_operation(op_id)

    threads = [threading.Thread(target=worker, args=(n * 1000,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    expected = sum(op.signed_amount for op in ops.snapshot())
    assert accounts.get(1).balance == expected


def test_timing_enabled_keeps_results(caplog):
    ledger = Ledger(timing_enabled=True)
    with caplog.at_level("INFO", logger="core.timing"):
        acc = ledger.create_account(1, "Main")
        ledger.create_operation(1, "income", 1, 10, date(2024, 1, 1), "", 1)
    assert acc.name == "Main"
    assert ledger.get_account(1).balance == 10
    assert any("create_operation executed in" in r.getMessage() for r in caplog.records)


def test_timing_covers_every_mutation(caplog):
    ledger = Ledger(timing_enabled=True)
    with caplog.at_level("INFO", logger="core.timing"):
        ledger.create_account(1, "Main")
        ledger.update_account(1, "Everyday")
        ledger.create_category(1, "expense", "Food")
        ledger.update_category(1, "Groceries")
        ledger.delete_category(1)
        ledger.delete_operation(5)
        ledger.delete_account(1)
    messages = " ".join(r.getMessage() for r in caplog.records)
    for name in ("create_account", "update_account", "delete_account",
                 "create_category", "update_category", "delete_category", "delete_operation"):
        assert f"{name} executed in" in messages


def test_timing_disabled_logs_nothing(caplog):
    ledger = Ledger()
    with caplog.at_level("INFO", logger="core.timing"):
        ledger.create_account(1, "Main")
        ledger.create_operation(1, "income", 1, 10, date(2024, 1, 1), "", 1)
    assert not [r for r in caplog.records if r.name == "core.timing"]
    assert ledger.get_account(1).balance == 10


def test_id_allocator():
    ids = IdAllocator()
    assert ids.next_id("account") == 1
    assert ids.next_id("account") == 2
    assert ids.next_id("category") == 1
    ids.reserve("operation", 10)
    assert ids.next_id("operation") == 11
    ids.reserve("operation", 3)
    assert ids.next_id("operation") == 12
