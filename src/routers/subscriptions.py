from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from src.crud import crud_subscription
from src.models import subscription as subscription_models
from src.models import transaction as transaction_models
from src.db.core import get_db, NotFoundError

router = APIRouter(
    prefix="/subscriptions",
    tags=["subscriptions"],
)

@router.post("/", response_model=subscription_models.SubscriptionResponse, status_code=status.HTTP_201_CREATED)
def create_subscription(
    subscription: subscription_models.SubscriptionCreate,
    db: Session = Depends(get_db)
):
    """
    Create a subscription. Active subscriptions are backfilled with one
    expense per chargeable billing date up to today.
    """
    try:
        return crud_subscription.create_db_subscription(db=db, subscription_data=subscription)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/", response_model=List[subscription_models.SubscriptionResponse])
def read_subscriptions(
    account_id: Optional[int] = None,
    active_only: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    return crud_subscription.read_db_subscriptions(
        db=db, account_id=account_id, active_only=active_only, skip=skip, limit=limit
    )

@router.post("/sync", response_model=subscription_models.SubscriptionSyncResult)
def sync_subscriptions(db: Session = Depends(get_db)):
    """
    Add any billing occurrences that came due since the last generated entry.
    """
    checked, created = crud_subscription.sync_db_subscriptions(db=db)
    return subscription_models.SubscriptionSyncResult(subscriptions_checked=checked, transactions_created=created)

@router.get("/{subscription_id}", response_model=subscription_models.SubscriptionResponse)
def read_subscription(subscription_id: int, db: Session = Depends(get_db)):
    db_subscription = crud_subscription.read_db_subscription(db=db, subscription_id=subscription_id)
    if db_subscription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    return db_subscription

@router.get("/{subscription_id}/transactions", response_model=List[transaction_models.TransactionResponse])
def read_subscription_transactions(subscription_id: int, db: Session = Depends(get_db)):
    """
    Ledger entries generated by the subscription, oldest first.
    """
    try:
        return crud_subscription.read_db_subscription_transactions(db=db, subscription_id=subscription_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.put("/{subscription_id}", response_model=subscription_models.SubscriptionResponse)
def update_subscription(
    subscription_id: int,
    subscription: subscription_models.SubscriptionUpdate,
    db: Session = Depends(get_db)
):
    """
    Update a subscription. Schedule changes regenerate its ledger entries.
    """
    try:
        return crud_subscription.update_db_subscription(
            db=db, subscription_id=subscription_id, subscription_updates=subscription
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscription(subscription_id: int, db: Session = Depends(get_db)):
    """
    Delete a subscription together with every transaction it generated.
    """
    try:
        crud_subscription.delete_db_subscription(db=db, subscription_id=subscription_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
