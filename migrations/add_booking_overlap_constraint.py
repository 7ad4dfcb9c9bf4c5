"""
Add the booking overlap exclusion constraint (PostgreSQL only)

Migration to add:
- btree_gist extension
- bookings_no_overlap_per_therapist: no two pending/confirmed bookings of the
  same therapist may have intersecting [start, end) ranges

The booking service already checks overlaps under a row lock; this is the
database-level backstop. Violations surface as IntegrityError and are turned
into SlotConflictError by the booking service.

Run with: python migrations/add_booking_overlap_constraint.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text

from mindweal.database import Database

CONSTRAINT_NAME = "bookings_no_overlap_per_therapist"


def upgrade(database: Database):
    """Install the exclusion constraint if it's not there yet"""
    engine = database.engine
    if engine.dialect.name != "postgresql":
        print(f"ℹ️  {engine.dialect.name} does not support exclusion constraints, skipping")
        return

    with engine.connect() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))

        # Check if the constraint already exists to make migration idempotent
        result = conn.execute(
            text("SELECT 1 FROM pg_constraint WHERE conname = :name"),
            {"name": CONSTRAINT_NAME},
        )
        if result.first():
            print(f"ℹ️  {CONSTRAINT_NAME} already exists")
            return

        conn.execute(text(f"""
            ALTER TABLE bookings
            ADD CONSTRAINT {CONSTRAINT_NAME}
            EXCLUDE USING gist (
                therapist_id WITH =,
                tstzrange(start_datetime, end_datetime, '[)') WITH &&
            )
            WHERE (status IN ('pending', 'confirmed'))
        """))
        conn.commit()
        print(f"✅ Added {CONSTRAINT_NAME}")


def downgrade(database: Database):
    with database.engine.connect() as conn:
        conn.execute(text(f"ALTER TABLE bookings DROP CONSTRAINT IF EXISTS {CONSTRAINT_NAME}"))
        conn.commit()
        print(f"✅ Dropped {CONSTRAINT_NAME}")


if __name__ == "__main__":
    db = Database().open()
    try:
        if len(sys.argv) > 1 and sys.argv[1] == "downgrade":
            downgrade(db)
        else:
            upgrade(db)
        print("✅ Migration completed successfully!")
    except Exception as e:
        print(f"❌ Migration failed: {e}")
        sys.exit(1)
    finally:
        db.close()
