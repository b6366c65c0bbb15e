#!/usr/bin/env python3
"""
Create the portal schema on the configured database and verify that every
lifecycle table exists. Safe to run repeatedly: existing tables are left as-is.
"""

import sys
from pathlib import Path

# Make `portal` importable when run as a script.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from portal.app import database


def migrate():
    print(f"Creating portal tables on {database.engine.url.render_as_string(hide_password=True)} ...")
    database.init_db()

    missing = database.missing_tables()
    if missing:
        print(f"✗ Missing tables after create_all: {', '.join(missing)}")
        return False
    print(f"✓ All lifecycle tables present: {', '.join(database.LIFECYCLE_TABLES)}")
    return True


if __name__ == "__main__":
    success = migrate()
    sys.exit(0 if success else 1)
