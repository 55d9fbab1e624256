import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Optional, Sequence

from models import MonthDayPolicy, TransactionType
from recurrence import RecurrenceRule, occurrence_dates

logger = logging.getLogger(__name__)

_DATE_SUFFIX_LEN = len("-YYYY-MM-DD")


@dataclass(frozen=True)
class LedgerTransaction:
    id: str
    type: TransactionType
    amount_cents: int
    description: str
    date: date
    category: Optional[str] = None
    rule: Optional[RecurrenceRule] = None
    until: Optional[date] = None
    is_instance: bool = False
    parent_id: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.rule is not None and not self.is_instance


@dataclass(frozen=True)
class Totals:
    income_cents: int
    expense_cents: int

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expense_cents


def instance_id(parent_id: str, occurrence: date) -> str:
    return f"{parent_id}-{occurrence.isoformat()}"


def split_instance_id(value: str) -> Optional[tuple[str, date]]:
    """Return ``(parent_id, occurrence)`` for an instance id, else None."""
    if len(value) <= _DATE_SUFFIX_LEN or value[-_DATE_SUFFIX_LEN] != "-":
        return None
    try:
        occurrence = date.fromisoformat(value[-_DATE_SUFFIX_LEN + 1 :])
    except ValueError:
        return None
    return value[:-_DATE_SUFFIX_LEN], occurrence


def expand_instances(
    txn: LedgerTransaction,
    range_start: date,
    range_end: date,
    *,
    policy: MonthDayPolicy = MonthDayPolicy.snap_to_end,
) -> list[LedgerTransaction]:
    if not txn.is_recurring:
        return []
    return [
        replace(
            txn,
            id=instance_id(txn.id, occurrence),
            date=occurrence,
            is_instance=True,
            parent_id=txn.id,
        )
        for occurrence in occurrence_dates(
            txn.date,
            txn.rule,
            range_start,
            range_end,
            until=txn.until,
            policy=policy,
        )
    ]


def query_range(
    transactions: Iterable[LedgerTransaction],
    range_start: date,
    range_end: date,
    *,
    policy: MonthDayPolicy = MonthDayPolicy.snap_to_end,
) -> list[LedgerTransaction]:
    """Plain transactions in the window plus expanded recurring instances.

    Recurring parents only appear through their occurrences. The result is
    newest first; equal dates keep their input order.
    """
    plain: list[LedgerTransaction] = []
    instances: list[LedgerTransaction] = []
    recurring_count = 0
    for txn in transactions:
        if txn.is_instance:
            continue
        if txn.is_recurring:
            recurring_count += 1
            instances.extend(
                expand_instances(txn, range_start, range_end, policy=policy)
            )
        elif range_start <= txn.date <= range_end:
            plain.append(txn)
    logger.debug(
        f"query_range: start={range_start} end={range_end} plain={len(plain)} "
        f"recurring={recurring_count} instances={len(instances)}"
    )
    return sorted(plain + instances, key=lambda t: t.date, reverse=True)


def compute_totals(transactions: Sequence[LedgerTransaction]) -> Totals:
    income = sum(
        t.amount_cents for t in transactions if t.type == TransactionType.income
    )
    expenses = sum(
        t.amount_cents for t in transactions if t.type == TransactionType.expense
    )
    return Totals(income_cents=income, expense_cents=expenses)
