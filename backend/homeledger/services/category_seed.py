"""
Fixed category vocabulary and its idempotent seeding.
"""
import logging
from typing import List, Tuple

from sqlalchemy.orm import Session

from homeledger.models import Category

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

# (name, parent group, icon, color)
CATEGORY_VOCABULARY: List[Tuple[str, str, str, str]] = [
    ("Rental Income", "Income", "🏘️", "#2E7D32"),
    ("Salary", "Income", "💼", "#388E3C"),
    ("Investment Returns", "Income", "📈", "#43A047"),
    ("Other Income", "Income", "💵", "#66BB6A"),
    ("Mortgage", "Housing", "🏠", "#1565C0"),
    ("HOA Dues", "Housing", "🏢", "#1976D2"),
    ("Property Tax", "Housing", "🧾", "#1E88E5"),
    ("Repairs", "Housing", "🔧", "#42A5F5"),
    ("Utilities", "Housing", "💡", "#64B5F6"),
    ("Rent", "Housing", "🔑", "#90CAF9"),
    ("Groceries", "Living", "🛒", "#EF6C00"),
    ("Dining Out", "Living", "🍽️", "#F57C00"),
    ("Gas", "Living", "⛽", "#FB8C00"),
    ("Shopping", "Living", "🛍️", "#FFA726"),
    ("Transportation", "Living", "🚗", "#FFB74D"),
    ("Investments", "Financial", "📊", "#6A1B9A"),
    ("Insurance", "Financial", "🛡️", "#7B1FA2"),
    ("Loan Payment", "Financial", "📋", "#8E24AA"),
    ("Savings Transfer", "Financial", "🏦", "#AB47BC"),
    ("Fees & Charges", "Financial", "💸", "#BA68C8"),
    ("Healthcare", "Lifestyle", "🩺", "#C62828"),
    ("Subscriptions", "Lifestyle", "🔁", "#D32F2F"),
    ("Travel", "Lifestyle", "✈️", "#E53935"),
    ("Entertainment", "Lifestyle", "🎬", "#EF5350"),
    ("Education", "Lifestyle", "🎓", "#E57373"),
    ("Business Expense", "Other", "🧳", "#455A64"),
    ("Transfer", "Other", "🔄", "#607D8B"),
    (UNCATEGORIZED, "Other", "❓", "#90A4AE"),
]

CATEGORY_NAMES: List[str] = [name for name, _parent, _icon, _color in CATEGORY_VOCABULARY]


def seed_categories(db: Session) -> int:
    """
    Insert any vocabulary entries missing from the categories table.

    Existing rows are left untouched. Commits.

    Returns:
        Number of categories created
    """
    existing = {name for (name,) in db.query(Category.name).all()}
    created = 0
    for name, parent, icon, color in CATEGORY_VOCABULARY:
        if name in existing:
            continue
        db.add(Category(name=name, parent=parent, icon=icon, color=color))
        created += 1

    if created:
        db.commit()
        logger.info(f"Seeded {created} categories")
    return created
