from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional

from src.db.core import CategoryDB, CategoryType, TransactionDB, BudgetDB, NotFoundError, SUBSCRIPTIONS_CATEGORY_NAME
from src.models.category import CategoryCreate, CategoryUpdate, CategoryTypeEnum
from src.logging_config import get_logger

logger = get_logger(__name__)

SUBSCRIPTIONS_CATEGORY_ICON = "repeat.circle.fill"
SUBSCRIPTIONS_CATEGORY_COLOR = "#A020F0"


def create_db_category(db: Session, category_data: CategoryCreate) -> CategoryDB:
    """Create a new user category"""

    # Check for duplicate category name
    existing_category = db.query(CategoryDB).filter(CategoryDB.name.ilike(category_data.name)).first()
    if existing_category:
        raise ValueError(f"Category with name '{category_data.name}' already exists")

    db_category = CategoryDB(
        name=category_data.name,
        category_type=CategoryType(category_data.category_type.value),
        icon=category_data.icon,
        color_hex=category_data.color_hex,
        is_custom=True,
    )

    try:
        db.add(db_category)
        db.commit()
        db.refresh(db_category)
        return db_category
    except IntegrityError:
        db.rollback()
        raise ValueError("Category creation failed due to a database constraint.")

def read_db_categories(db: Session, category_type: Optional[CategoryTypeEnum] = None,
                       skip: int = 0, limit: int = 100) -> List[CategoryDB]:
    """Read all categories, optionally of one type"""
    query = db.query(CategoryDB)
    if category_type:
        query = query.filter(CategoryDB.category_type == CategoryType(category_type.value))
    return query.order_by(CategoryDB.name).offset(skip).limit(limit).all()

def read_db_category(db: Session, category_id: int) -> Optional[CategoryDB]:
    """Read a single category by its ID"""
    return db.query(CategoryDB).filter(CategoryDB.id == category_id).first()

def get_or_create_subscriptions_category(db: Session) -> CategoryDB:
    """
    Find the shared category for generated subscription entries, creating it
    on first use. Flushes but never commits: the caller's unit of work owns
    the new row, so a failed generation leaves no orphan category behind.
    """
    category = db.query(CategoryDB).filter(CategoryDB.name == SUBSCRIPTIONS_CATEGORY_NAME).first()
    if category:
        return category

    category = CategoryDB(
        name=SUBSCRIPTIONS_CATEGORY_NAME,
        category_type=CategoryType.EXPENSE,
        icon=SUBSCRIPTIONS_CATEGORY_ICON,
        color_hex=SUBSCRIPTIONS_CATEGORY_COLOR,
        is_custom=False,
    )
    db.add(category)
    db.flush()
    logger.info(f"Created '{SUBSCRIPTIONS_CATEGORY_NAME}' category (id={category.id})")
    return category

def update_db_category(db: Session, category_id: int, category_updates: CategoryUpdate) -> CategoryDB:
    """Update a category's details"""
    db_category = read_db_category(db, category_id)
    if not db_category:
        raise NotFoundError(f"Category with id {category_id} not found")

    update_data = category_updates.model_dump(exclude_unset=True)

    # Check for duplicate name if name is being updated
    if 'name' in update_data:
        new_name = update_data['name']
        existing = db.query(CategoryDB).filter(CategoryDB.name.ilike(new_name), CategoryDB.id != category_id).first()
        if existing:
            raise ValueError(f"Category with name '{new_name}' already exists")

    for field, value in update_data.items():
        if field == 'category_type' and value:
            setattr(db_category, field, CategoryType(value.value))
        else:
            setattr(db_category, field, value)

    try:
        db.commit()
        db.refresh(db_category)
        return db_category
    except IntegrityError:
        db.rollback()
        raise ValueError("Category update failed due to a database constraint.")

def delete_db_category(db: Session, category_id: int) -> bool:
    """Delete a category. Transactions keep existing uncategorised; budgets tracking it are removed."""
    db_category = read_db_category(db, category_id)
    if not db_category:
        raise NotFoundError(f"Category with id {category_id} not found")

    try:
        db.query(TransactionDB).filter(TransactionDB.category_id == category_id).update(
            {TransactionDB.category_id: None}, synchronize_session=False
        )
        db.query(BudgetDB).filter(BudgetDB.category_id == category_id).delete(synchronize_session=False)
        db.expire_all()
        db.delete(db_category)
        db.commit()
        return True
    except IntegrityError:
        db.rollback()
        raise ValueError("Cannot delete category as it is currently in use.")
