#!/usr/bin/env python
"""Reset the global room to a few sample messages.

Deletes every row in ``messages`` and inserts a short welcome thread, so local
UI work starts from a clean chat.

Constraints:
- Refuses to run in staging or prod (LUMI_ENV check)
- Never runs automatically (manual invocation only)

Usage:
    DATABASE_URL=... python scripts/clear_messages.py
"""

import sys

SAMPLE_MESSAGES = [
    ("System", "Welcome to the fresh chat! 🎉"),
    ("Alice", "Hello everyone! 👋"),
    ("Bob", "Hey there! Nice clean chat!"),
]


def main() -> int:
    from sqlalchemy import delete

    from lumi.config import get_settings
    from lumi.db.models import Message
    from lumi.db.session import session_scope, transaction

    settings = get_settings()
    if settings.is_deployed:
        print(f"ERROR: clear_messages.py refuses to run in LUMI_ENV={settings.lumi_env.value}")
        return 1

    with session_scope() as db, transaction(db):
        removed = db.execute(delete(Message)).rowcount
        db.add_all(Message(username=u, message=m) for u, m in SAMPLE_MESSAGES)

    print(f"LUMI_ENV: {settings.lumi_env.value}")
    print(f"✓ Removed {removed} messages")
    print(f"✓ Inserted {len(SAMPLE_MESSAGES)} sample messages")
    return 0


if __name__ == "__main__":
    sys.exit(main())
