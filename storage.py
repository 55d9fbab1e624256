import logging
from contextlib import contextmanager
from typing import Iterator, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from database import session_scope
from ledger import LedgerTransaction
from models import Transaction
from recurrence import parse_pattern

logger = logging.getLogger(__name__)


class TransactionStore(Protocol):
    def load(self) -> list[LedgerTransaction]: ...

    def save(self, transactions: Sequence[LedgerTransaction]) -> None: ...


def _to_ledger(row: Transaction) -> LedgerTransaction:
    rule = parse_pattern(row.recurrence_pattern) if row.recurrence_pattern else None
    return LedgerTransaction(
        id=row.id,
        type=row.type,
        amount_cents=row.amount_cents,
        description=row.description,
        date=row.date,
        category=row.category,
        rule=rule,
        until=row.recurrence_until if rule else None,
    )


def _apply(row: Transaction, txn: LedgerTransaction) -> None:
    row.type = txn.type
    row.amount_cents = txn.amount_cents
    row.description = txn.description
    row.category = txn.category
    row.date = txn.date
    row.recurrence_pattern = txn.rule.pattern if txn.rule else None
    row.recurrence_until = txn.until if txn.rule else None


class SqlTransactionStore:
    """Full-snapshot store over the ``transactions`` table."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self) -> list[LedgerTransaction]:
        stmt = select(Transaction).order_by(Transaction.date, Transaction.id)
        return [_to_ledger(row) for row in self.session.scalars(stmt).all()]

    def save(self, transactions: Sequence[LedgerTransaction]) -> None:
        if any(txn.is_instance for txn in transactions):
            raise ValueError("Recurring instances are never persisted")
        kept = {txn.id for txn in transactions}
        if len(kept) != len(transactions):
            raise ValueError("Duplicate transaction ids")

        existing = {
            row.id: row for row in self.session.scalars(select(Transaction)).all()
        }
        for txn in transactions:
            row = existing.get(txn.id)
            if row is None:
                row = Transaction(id=txn.id)
                self.session.add(row)
            _apply(row, txn)

        removed = 0
        for row_id, row in existing.items():
            if row_id not in kept:
                self.session.delete(row)
                removed += 1

        self.session.commit()
        logger.debug(f"store_save: saved={len(kept)} removed={removed}")


@contextmanager
def store_scope() -> Iterator[SqlTransactionStore]:
    with session_scope() as session:
        yield SqlTransactionStore(session)
