"""
Create the HomeLedger tables and seed the category vocabulary.
Run with: cd backend && python postgres_migration/seed_data.py

Safe to run repeatedly: existing tables and categories are left as they are.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import homeledger modules
# This allows running from either backend/ or backend/postgres_migration/
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from homeledger.database import engine, SessionLocal, Base
from homeledger.services.category_seed import seed_categories


def main() -> int:
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        created = seed_categories(db)
    finally:
        db.close()

    print(f"Tables ready; {created} categories inserted.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
