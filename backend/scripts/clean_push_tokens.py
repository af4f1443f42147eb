"""
Remove unusable push targets.

Legacy web clients stored made-up tokens like "web_1699999999" in
push_token; those can never be delivered and are always cleared. With
--all-subscriptions every stored Web Push subscription is dropped too, so
browsers re-subscribe with the current VAPID keys.

Run from the backend/ directory:
    python scripts/clean_push_tokens.py [--all-subscriptions]
"""
import argparse
import asyncio
import os
import sys

from sqlalchemy import update

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import async_session, init_db
from db_models import User
from domain.constants import FAKE_WEB_TOKEN_PREFIX


async def clean(all_subscriptions: bool) -> int:
    await init_db()
    async with async_session() as db:
        res = await db.execute(
            update(User)
            .where(User.push_token.like(f"{FAKE_WEB_TOKEN_PREFIX}%"))
            .values(push_token=None)
        )
        print(f"🧹 Cleared {res.rowcount} fake web token(s)")

        if all_subscriptions:
            res = await db.execute(
                update(User).where(User.push_subscription.isnot(None)).values(push_subscription=None)
            )
            print(f"🧹 Cleared {res.rowcount} web push subscription(s)")
        await db.commit()

    print("✅ Done")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Clean invalid push tokens and subscriptions")
    parser.add_argument(
        "--all-subscriptions",
        action="store_true",
        help="also drop every stored Web Push subscription",
    )
    args = parser.parse_args()
    return asyncio.run(clean(args.all_subscriptions))


if __name__ == "__main__":
    sys.exit(main())
