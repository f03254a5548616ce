from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from src.crud import crud_account, crud_subscription
from src.models import account as account_models
from src.db.core import get_db, NotFoundError

router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
)

@router.post("/", response_model=account_models.AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    account: account_models.AccountCreate,
    db: Session = Depends(get_db)
):
    """
    Create a new account.
    """
    try:
        return crud_account.create_db_account(db=db, account_data=account)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/", response_model=List[account_models.AccountResponse])
def read_accounts(
    account_type: Optional[account_models.AccountTypeEnum] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """
    Retrieve all accounts, optionally of one type.
    """
    return crud_account.read_db_accounts(db=db, account_type=account_type, skip=skip, limit=limit)

@router.get("/{account_id}", response_model=account_models.AccountResponse)
def read_account(account_id: int, db: Session = Depends(get_db)):
    db_account = crud_account.read_db_account(db=db, account_id=account_id)
    if db_account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return db_account

@router.get("/{account_id}/subscriptions/summary", response_model=account_models.AccountSubscriptionSummary)
def read_account_subscription_summary(account_id: int, db: Session = Depends(get_db)):
    """
    Number of active subscriptions paid from the account and their approximate monthly cost.
    """
    try:
        return crud_subscription.get_account_subscription_summary(db=db, account_id=account_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.put("/{account_id}", response_model=account_models.AccountResponse)
def update_account(
    account_id: int,
    account: account_models.AccountUpdate,
    db: Session = Depends(get_db)
):
    try:
        return crud_account.update_db_account(db=db, account_id=account_id, account_updates=account)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(account_id: int, db: Session = Depends(get_db)):
    """
    Delete an account with its transactions, budgets and subscriptions.
    """
    try:
        crud_account.delete_db_account(db=db, account_id=account_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
