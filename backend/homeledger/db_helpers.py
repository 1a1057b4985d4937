"""
Store helpers shared by the sync and categorization services.

Natural-key dedup and the single-row config live here so they can be tested
without any aggregator or oracle in the loop.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar
from uuid import UUID

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, MultipleResultsFound
from sqlalchemy.orm import Session

from homeledger.errors import ConfigCorrupt
from homeledger.models import (
    AGGREGATOR_CONFIG_SINGLETON_ID,
    AggregatorConfig,
    Category,
    Transaction,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def find_by_natural_key(db: Session, model: Type[ModelT], key: str, value: Any) -> Optional[ModelT]:
    column = getattr(model, key)
    return db.query(model).filter(column == value).one_or_none()


def find_or_create_by_natural_key(
    db: Session,
    model: Type[ModelT],
    key: str,
    value: Any,
    defaults: Optional[Dict[str, Any]] = None,
) -> Tuple[ModelT, bool]:
    """
    Return the row whose `key` column equals `value`, inserting it if absent.

    The insert is flushed inside a savepoint. If a concurrent writer inserted the
    same key first, the unique constraint rejects ours, the savepoint is rolled
    back and the winner's row is returned instead.

    Args:
        db: SQLAlchemy session
        model: Mapped class with a unique column named `key`
        key: Name of the natural-key column (e.g. "simplefin_id")
        value: Natural-key value
        defaults: Column values used only when inserting

    Returns:
        Tuple of (row, created)
    """
    existing = find_by_natural_key(db, model, key, value)
    if existing is not None:
        return existing, False

    instance = model(**{key: value, **(defaults or {})})
    try:
        with db.begin_nested():
            db.add(instance)
            db.flush()
    except IntegrityError:
        winner = find_by_natural_key(db, model, key, value)
        if winner is None:
            # Constraint violation unrelated to the natural key.
            raise
        logger.info(f"Concurrent insert of {model.__name__} {key}={value!r}; using existing row")
        return winner, False

    return instance, True


def get_aggregator_config(db: Session) -> Optional[AggregatorConfig]:
    """
    Read the single config row.

    Raises:
        ConfigCorrupt: more than one row exists
    """
    try:
        return db.query(AggregatorConfig).one_or_none()
    except MultipleResultsFound as exc:
        raise ConfigCorrupt("More than one SimpleFIN configuration row exists") from exc


def upsert_aggregator_config(db: Session, **fields: Any) -> AggregatorConfig:
    """
    Write `fields` to the single config row, creating it if it does not exist.

    The update is unconditional on id, so it never depends on a previously read
    primary key. Only when it touches no row is an insert attempted, always with
    the fixed singleton id; a racing insert therefore collides on the primary key
    and falls back to the update. Does not commit.
    """
    if not fields:
        raise ValueError("upsert_aggregator_config() needs at least one field")

    existing_rows = db.query(AggregatorConfig).count()
    if existing_rows > 1:
        raise ConfigCorrupt("More than one SimpleFIN configuration row exists")

    if existing_rows == 0:
        try:
            with db.begin_nested():
                db.add(AggregatorConfig(id=AGGREGATOR_CONFIG_SINGLETON_ID, **fields))
                db.flush()
            return get_aggregator_config(db)
        except IntegrityError:
            logger.info("SimpleFIN config row created concurrently; updating it instead")

    result = db.execute(
        update(AggregatorConfig).values(**fields).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConfigCorrupt("SimpleFIN configuration row disappeared during update")

    config = get_aggregator_config(db)
    db.refresh(config)
    return config


def list_uncategorized_transactions(db: Session, limit: int) -> List[Transaction]:
    """Transactions with no category and no human override, oldest first."""
    return (
        db.query(Transaction)
        .filter(
            Transaction.category_id.is_(None),
            or_(Transaction.user_override.is_(None), Transaction.user_override.is_(False)),
        )
        .order_by(Transaction.posted_date.asc(), Transaction.created_at.asc())
        .limit(limit)
        .all()
    )


def category_id_lookup(db: Session) -> Dict[str, UUID]:
    """Exact category name -> id."""
    return {name: category_id for category_id, name in db.query(Category.id, Category.name).all()}
