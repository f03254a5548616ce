from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from src.crud import crud_transaction
from src.models import transaction as transaction_models
from src.db.core import get_db, NotFoundError

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)

@router.post("/", response_model=transaction_models.TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: transaction_models.TransactionCreate,
    db: Session = Depends(get_db)
):
    """
    Record a manual income, expense or transfer.
    """
    try:
        return crud_transaction.create_db_transaction(db=db, transaction_data=transaction)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/", response_model=List[transaction_models.TransactionResponse])
def read_transactions(
    account_id: Optional[int] = None,
    category_id: Optional[int] = None,
    subscription_id: Optional[int] = None,
    transaction_type: Optional[transaction_models.TransactionTypeEnum] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    generated_only: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """
    Retrieve transactions, newest first.
    """
    filters = transaction_models.TransactionFilter(
        account_id=account_id,
        category_id=category_id,
        subscription_id=subscription_id,
        transaction_type=transaction_type,
        date_from=date_from,
        date_to=date_to,
        generated_only=generated_only,
    )
    return crud_transaction.read_db_transactions(db=db, filters=filters, skip=skip, limit=limit)

@router.get("/{transaction_id}", response_model=transaction_models.TransactionResponse)
def read_transaction(transaction_id: int, db: Session = Depends(get_db)):
    db_transaction = crud_transaction.read_db_transaction(db=db, transaction_id=transaction_id)
    if db_transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return db_transaction

@router.put("/{transaction_id}", response_model=transaction_models.TransactionResponse)
def update_transaction(
    transaction_id: int,
    transaction: transaction_models.TransactionUpdate,
    db: Session = Depends(get_db)
):
    try:
        return crud_transaction.update_db_transaction(db=db, transaction_id=transaction_id, transaction_updates=transaction)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        crud_transaction.delete_db_transaction(db=db, transaction_id=transaction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
