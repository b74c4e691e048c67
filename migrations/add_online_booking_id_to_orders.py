"""
Add the online booking link to orders

Columns:
- online_booking_id VARCHAR(36), unique when set

An appointment created from an online booking carries the booking id, so
a retried conversion finds the existing appointment instead of creating a
second one.
"""

# Ensure this script can be run directly from the repo root
import sys
from pathlib import Path

CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_DIR = CURRENT_DIR.parent
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

from sqlalchemy import inspect, text

from salon_crm.database import build_engine

INDEX_NAME = "orders_online_booking_id_key"


def upgrade(engine=None):
    engine = engine or build_engine()
    columns = {column["name"] for column in inspect(engine).get_columns("orders")}

    with engine.connect() as conn:
        if "online_booking_id" not in columns:
            conn.execute(text("ALTER TABLE orders ADD COLUMN online_booking_id VARCHAR(36)"))
        # Partial index: manual appointments keep online_booking_id NULL
        conn.execute(
            text(
                f"""
                CREATE UNIQUE INDEX IF NOT EXISTS {INDEX_NAME}
                ON orders (online_booking_id)
                WHERE online_booking_id IS NOT NULL
                """
            )
        )
        conn.commit()
        print("Migration add_online_booking_id_to_orders applied successfully")


def downgrade(engine=None):
    engine = engine or build_engine()
    with engine.connect() as conn:
        conn.execute(text(f"DROP INDEX IF EXISTS {INDEX_NAME}"))
        conn.execute(text("ALTER TABLE orders DROP COLUMN online_booking_id"))
        conn.commit()
        print("Migration add_online_booking_id_to_orders rolled back")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage the orders.online_booking_id migration")
    parser.add_argument("--down", action="store_true", help="Rollback the migration")
    args = parser.parse_args()

    if args.down:
        downgrade()
    else:
        upgrade()
