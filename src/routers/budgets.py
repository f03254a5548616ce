from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from src.crud import crud_budget
from src.models import budget as budget_models
from src.db.core import get_db, NotFoundError

router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)

@router.post("/", response_model=budget_models.BudgetResponse, status_code=status.HTTP_201_CREATED)
def create_budget(
    budget: budget_models.BudgetCreate,
    db: Session = Depends(get_db)
):
    """
    Create a monthly budget for a category, an account, or a category on one account.
    """
    try:
        return crud_budget.create_db_budget(db=db, budget_data=budget)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/", response_model=List[budget_models.BudgetResponse])
def read_budgets(
    account_id: Optional[int] = None,
    include_progress: bool = True,
    db: Session = Depends(get_db)
):
    """
    Retrieve budgets with this month's progress. With account_id, only global
    budgets and budgets for that account are listed, measured on that account.
    """
    try:
        return crud_budget.read_db_budgets(db=db, account_id=account_id, include_progress=include_progress)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/{budget_id}", response_model=budget_models.BudgetResponse)
def read_budget(
    budget_id: int,
    account_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    try:
        db_budget = crud_budget.read_db_budget(db=db, budget_id=budget_id, scope_account_id=account_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if db_budget is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget not found")
    return db_budget

@router.get("/{budget_id}/progress", response_model=budget_models.BudgetProgress)
def read_budget_progress(
    budget_id: int,
    account_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """
    This month's matched total, progress ratio and status for a budget.
    """
    try:
        return crud_budget.read_db_budget_progress(db=db, budget_id=budget_id, scope_account_id=account_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.put("/{budget_id}", response_model=budget_models.BudgetResponse)
def update_budget(
    budget_id: int,
    budget: budget_models.BudgetUpdate,
    db: Session = Depends(get_db)
):
    try:
        return crud_budget.update_db_budget(db=db, budget_id=budget_id, budget_updates=budget)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_budget(budget_id: int, db: Session = Depends(get_db)):
    try:
        crud_budget.delete_db_budget(db=db, budget_id=budget_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
