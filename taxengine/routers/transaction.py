"""
taxengine/routers/transaction.py

Router for storing the raw transactions that tax reports are computed from.
Transactions are stored as given; nothing is calculated on write.
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import List
from sqlalchemy.orm import Session

from taxengine.schemas.transaction import Transaction, TransactionCreate
from taxengine.services import transaction as tx_service
from taxengine.database import get_db

router = APIRouter(tags=["transactions"])


@router.get("/", response_model=List[Transaction])
def list_transactions(db: Session = Depends(get_db)):
    """
    List all stored transactions in processing order (timestamp, then id).
    """
    return tx_service.get_all_transactions(db)


@router.post("/", response_model=Transaction)
def create_transaction(tx: TransactionCreate, db: Session = Depends(get_db)):
    """
    Store one transaction. Returns it with its assigned 'id'.
    """
    return tx_service.create_transaction_record(tx, db)


@router.post("/bulk", response_model=List[Transaction])
def create_transactions(txs: List[TransactionCreate], db: Session = Depends(get_db)):
    """
    Store many transactions in one commit.
    """
    if not txs:
        raise HTTPException(status_code=400, detail="No transactions supplied.")
    return tx_service.create_transaction_records(txs, db)


@router.get("/{transaction_id}", response_model=Transaction)
def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    tx = tx_service.get_transaction_by_id(db, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


@router.delete("/delete_all", status_code=200)
def delete_all_transactions_endpoint(db: Session = Depends(get_db)):
    """
    Delete every stored transaction.
    """
    count = tx_service.delete_all_transactions(db)
    return {"detail": f"Deleted {count} transactions."}


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    """
    Delete one stored transaction. Reports recomputed afterwards no longer see it.
    """
    success = tx_service.delete_transaction_record(transaction_id, db)
    if not success:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return None
