from datetime import date

from ledger import (
    LedgerTransaction,
    compute_totals,
    expand_instances,
    instance_id,
    query_range,
    split_instance_id,
)
from models import MonthDayPolicy, TransactionType
from recurrence import parse_pattern


def _plain(txn_id: str, day: date, amount: int, type_=TransactionType.expense):
    return LedgerTransaction(
        id=txn_id,
        type=type_,
        amount_cents=amount,
        description=f"Txn {txn_id}",
        date=day,
        category="Food" if type_ == TransactionType.expense else None,
    )


def _recurring(txn_id: str, anchor: date, pattern: str, amount: int, **kwargs):
    kwargs.setdefault("type", TransactionType.expense)
    kwargs.setdefault("category", "Housing")
    return LedgerTransaction(
        id=txn_id,
        amount_cents=amount,
        description=f"Recurring {txn_id}",
        date=anchor,
        rule=parse_pattern(pattern),
        **kwargs,
    )


def test_instance_ids_are_derived_from_parent_and_date():
    assert instance_id("abc", date(2025, 2, 3)) == "abc-2025-02-03"
    assert split_instance_id("abc-2025-02-03") == ("abc", date(2025, 2, 3))
    parent = "3f2b8c1e-9a4d-4c1b-8e2f-0a1b2c3d4e5f"
    assert split_instance_id(f"{parent}-2025-12-31") == (parent, date(2025, 12, 31))
    assert split_instance_id(parent) is None
    assert split_instance_id("abc-2025-02-30") is None
    assert split_instance_id("2025-02-03") is None


def test_expand_instances_copies_parent_fields():
    gym = _recurring("gym", date(2025, 2, 3), "every 2 weeks on monday", 4500)

    instances = expand_instances(gym, date(2025, 2, 1), date(2025, 3, 10))

    assert [i.id for i in instances] == [
        "gym-2025-02-03",
        "gym-2025-02-17",
        "gym-2025-03-03",
    ]
    for instance in instances:
        assert instance.is_instance
        assert instance.parent_id == "gym"
        assert instance.amount_cents == 4500
        assert instance.category == "Housing"
        assert instance.description == "Recurring gym"
        assert instance.rule == gym.rule
        assert not instance.is_recurring


def test_expand_instances_ignores_plain_transactions():
    assert expand_instances(_plain("a", date(2025, 1, 1), 100), date(2025, 1, 1), date(2025, 12, 31)) == []


def test_overlapping_windows_yield_identical_ids():
    rent = _recurring("rent", date(2025, 1, 1), "every 1 month", 90000)
    q1 = {i.id for i in expand_instances(rent, date(2025, 1, 1), date(2025, 3, 31))}
    feb_apr = {i.id for i in expand_instances(rent, date(2025, 2, 1), date(2025, 4, 30))}
    assert q1 & feb_apr == {"rent-2025-02-01", "rent-2025-03-01"}


def test_query_range_merges_filters_and_sorts_descending():
    transactions = [
        _plain("before", date(2024, 12, 31), 100),
        _plain("jan", date(2025, 1, 10), 200),
        _plain("feb", date(2025, 2, 14), 300),
        _plain("after", date(2025, 3, 1), 400),
        _recurring("rent", date(2024, 11, 1), "every 1 month", 90000),
        _recurring(
            "salary",
            date(2025, 1, 25),
            "every 1 month",
            250000,
            type=TransactionType.income,
            category=None,
        ),
    ]

    items = query_range(transactions, date(2025, 1, 1), date(2025, 2, 28))

    assert [t.id for t in items] == [
        "salary-2025-02-25",
        "feb",
        "rent-2025-02-01",
        "salary-2025-01-25",
        "jan",
        "rent-2025-01-01",
    ]
    assert "rent" not in {t.id for t in items}


def test_query_range_ties_keep_input_order():
    transactions = [
        _plain("first", date(2025, 1, 5), 100),
        _recurring("weekly", date(2025, 1, 5), "every 1 week", 50),
        _plain("second", date(2025, 1, 5), 200),
    ]

    items = query_range(transactions, date(2025, 1, 5), date(2025, 1, 5))

    assert [t.id for t in items] == ["first", "second", "weekly-2025-01-05"]


def test_query_range_honours_until_and_policy():
    transactions = [
        _recurring(
            "ending",
            date(2025, 1, 31),
            "every 31st of the month",
            1000,
            until=date(2025, 3, 31),
        ),
    ]

    snapped = query_range(transactions, date(2025, 1, 1), date(2025, 6, 30))
    assert [t.date for t in snapped] == [date(2025, 3, 31), date(2025, 2, 28), date(2025, 1, 31)]

    skipped = query_range(
        transactions, date(2025, 1, 1), date(2025, 6, 30), policy=MonthDayPolicy.skip
    )
    assert [t.date for t in skipped] == [date(2025, 3, 31), date(2025, 1, 31)]


def test_compute_totals():
    items = [
        _plain("a", date(2025, 1, 1), 250000, TransactionType.income),
        _plain("b", date(2025, 1, 2), 1299),
        _plain("c", date(2025, 1, 3), 90000),
    ]
    totals = compute_totals(items)
    assert totals.income_cents == 250000
    assert totals.expense_cents == 91299
    assert totals.balance_cents == 158701

    empty = compute_totals([])
    assert (empty.income_cents, empty.expense_cents, empty.balance_cents) == (0, 0, 0)
