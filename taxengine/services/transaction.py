# FILE: taxengine/services/transaction.py

"""
taxengine/services/transaction.py

Datastore side of the engine: stores raw transactions and hands them back as
engine input in the order calculate_tax_report() expects. No lot or gain state
is persisted; reports are always recomputed from these rows.
"""

import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy.orm import Session

from taxengine.models.transaction import StoredTransaction
from taxengine.schemas.transaction import Transaction, TransactionCreate

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Public Functions (CRUD + retrieval)
# ------------------------------------------------------------------------------
def get_all_transactions(db: Session) -> List[StoredTransaction]:
    """
    Return all stored transactions in processing order (timestamp, then id).
    """
    return (
        db.query(StoredTransaction)
        .order_by(StoredTransaction.timestamp.asc(), StoredTransaction.id.asc())
        .all()
    )


def get_transaction_by_id(db: Session, transaction_id: int):
    """
    Retrieve a single stored transaction by its ID (returns None if not found).
    """
    return db.query(StoredTransaction).filter(StoredTransaction.id == transaction_id).first()


def get_transactions_through_year(db: Session, year: int) -> List[Transaction]:
    """
    Every transaction up to the end of `year`, ordered by (timestamp, id) and
    converted to engine input. Earlier years are included because their lots
    supply basis for disposals in `year`.
    """
    year_end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    rows = (
        db.query(StoredTransaction)
        .filter(StoredTransaction.timestamp < year_end)
        .order_by(StoredTransaction.timestamp.asc(), StoredTransaction.id.asc())
        .all()
    )
    logger.debug(f"Loaded {len(rows)} transactions through {year}")
    return [to_engine_transaction(row) for row in rows]


def to_engine_transaction(row: StoredTransaction) -> Transaction:
    return Transaction.model_validate(row)


def create_transaction_record(tx: TransactionCreate, db: Session) -> StoredTransaction:
    """
    Stores one transaction. The row's price_per_unit is filled from value/amount
    when the caller did not supply one.
    """
    data = tx.model_dump()
    data["price_per_unit"] = tx.unit_price
    new_tx = StoredTransaction(**data)
    db.add(new_tx)
    db.commit()
    db.refresh(new_tx)
    logger.info(f"Stored transaction id={new_tx.id} type={new_tx.type} asset={new_tx.asset_symbol}")
    return new_tx


def create_transaction_records(txs: List[TransactionCreate], db: Session) -> List[StoredTransaction]:
    """
    Bulk insert in one commit; nothing is stored if any row fails.
    """
    rows = []
    try:
        for tx in txs:
            data = tx.model_dump()
            data["price_per_unit"] = tx.unit_price
            row = StoredTransaction(**data)
            db.add(row)
            rows.append(row)
        db.commit()
    except Exception as e:
        logger.error(f"Bulk insert failed, rolling back: {e}")
        db.rollback()
        raise
    for row in rows:
        db.refresh(row)
    logger.info(f"Stored {len(rows)} transactions")
    return rows


def delete_transaction_record(transaction_id: int, db: Session) -> bool:
    tx = get_transaction_by_id(db, transaction_id)
    if not tx:
        return False
    db.delete(tx)
    db.commit()
    return True


def delete_all_transactions(db: Session) -> int:
    """
    Bulk cleanup: remove all stored transactions. Return how many were deleted.
    """
    count = db.query(StoredTransaction).delete()
    db.commit()
    return count
