"""
Seed demo data for local verification.
Creates 1 RFQ for 10 containers with quotes from 2 invited vendors.
Run: python -m scripts.seed_demo_data
"""
import sys

from app.core.config import settings
from app.core.logging import setup_logging
from app.db.session import get_db_context, init_db
from app.db.seed import seed_demo_data


def main() -> int:
    if not settings.DEBUG:
        print("Refusing to seed demo data: DEBUG is not enabled")
        return 1

    setup_logging()
    init_db()
    with get_db_context() as db:
        created = seed_demo_data(db)

    if created:
        print("✅ Demo RFQ created")
    else:
        print("✓ RFQs already exist, nothing to do")
    return 0


if __name__ == "__main__":
    sys.exit(main())
