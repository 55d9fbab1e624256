from __future__ import annotations

import logging
import uuid
from typing import Optional

from config import get_settings
from ledger import (
    LedgerTransaction,
    Totals,
    compute_totals,
    query_range,
    split_instance_id,
)
from models import MonthDayPolicy, TransactionType
from periods import Period
from recurrence import parse_pattern, parse_until, resolve_anchor
from schemas import TransactionIn
from storage import TransactionStore

logger = logging.getLogger(__name__)


class TransactionNotFound(ValueError):
    pass


def default_month_day_policy() -> MonthDayPolicy:
    raw = get_settings().month_day_policy
    try:
        return MonthDayPolicy(raw)
    except ValueError as exc:
        raise ValueError(f"Unsupported month day policy: {raw}") from exc


class TransactionService:
    def __init__(
        self, store: TransactionStore, policy: Optional[MonthDayPolicy] = None
    ) -> None:
        self.store = store
        self.policy = policy or default_month_day_policy()

    def _build(self, transaction_id: str, data: TransactionIn) -> LedgerTransaction:
        category = data.category.strip() if data.category else None
        if data.type == TransactionType.income:
            category = None

        rule = None
        until = None
        anchor = data.date
        if data.recurring is not None:
            rule = parse_pattern(data.recurring.pattern)
            until = parse_until(data.recurring.until)
            anchor = resolve_anchor(data.date, rule, self.policy)
            if anchor != data.date:
                logger.info(
                    f"anchor_resolved: id={transaction_id} pattern={rule.pattern!r} "
                    f"proposed={data.date} anchor={anchor}"
                )

        return LedgerTransaction(
            id=transaction_id,
            type=data.type,
            amount_cents=data.amount_cents,
            description=data.description.strip(),
            date=anchor,
            category=category,
            rule=rule,
            until=until,
        )

    @staticmethod
    def _parent_id(transaction_id: str, stored_ids: set[str]) -> str:
        if transaction_id in stored_ids:
            return transaction_id
        parts = split_instance_id(transaction_id)
        if parts and parts[0] in stored_ids:
            return parts[0]
        raise TransactionNotFound("Transaction not found")

    def get(self, transaction_id: str) -> LedgerTransaction:
        transactions = {txn.id: txn for txn in self.store.load()}
        return transactions[self._parent_id(transaction_id, set(transactions))]

    def create(self, data: TransactionIn) -> LedgerTransaction:
        txn = self._build(str(uuid.uuid4()), data)
        transactions = self.store.load()
        transactions.append(txn)
        self.store.save(transactions)
        logger.info(
            f"transaction_created: id={txn.id} type={txn.type.value} "
            f"date={txn.date} recurring={txn.rule is not None}"
        )
        return txn

    def update(self, transaction_id: str, data: TransactionIn) -> LedgerTransaction:
        transactions = self.store.load()
        parent_id = self._parent_id(transaction_id, {t.id for t in transactions})
        txn = self._build(parent_id, data)
        self.store.save([txn if t.id == parent_id else t for t in transactions])
        logger.info(f"transaction_updated: id={parent_id} date={txn.date}")
        return txn

    def delete(self, transaction_id: str) -> LedgerTransaction:
        """Delete a transaction; an instance id removes its whole series."""
        transactions = self.store.load()
        parent_id = self._parent_id(transaction_id, {t.id for t in transactions})
        removed = next(t for t in transactions if t.id == parent_id)
        self.store.save([t for t in transactions if t.id != parent_id])
        logger.info(
            f"transaction_deleted: id={parent_id} requested={transaction_id}"
        )
        return removed

    def for_period(self, period: Period) -> list[LedgerTransaction]:
        return query_range(
            self.store.load(), period.start, period.end, policy=self.policy
        )

    def totals_for_period(self, period: Period) -> Totals:
        return compute_totals(self.for_period(period))
