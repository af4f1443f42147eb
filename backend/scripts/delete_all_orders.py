"""
Delete every order (with its items and status history). Development only.

Run from the backend/ directory:
    python scripts/delete_all_orders.py --yes
"""
import argparse
import asyncio
import os
import sys

from sqlalchemy import delete, func, select

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import settings
from database import async_session, init_db
from db_models import Order, OrderItem, OrderStatusEvent


async def delete_all_orders() -> int:
    await init_db()
    async with async_session() as db:
        total = (await db.execute(select(func.count(Order.id)))).scalar() or 0
        print(f"📦 Found {total} order(s)")
        await db.execute(delete(OrderStatusEvent))
        await db.execute(delete(OrderItem))
        await db.execute(delete(Order))
        await db.commit()
    print(f"✅ Deleted {total} order(s)")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Delete all orders")
    parser.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    args = parser.parse_args()

    if settings.is_production:
        print("❌ Refusing to delete orders in production")
        return 1
    if not args.yes:
        answer = input("⚠️  This deletes ALL orders. Type 'yes' to continue: ")
        if answer.strip().lower() != "yes":
            print("Aborted.")
            return 1
    return asyncio.run(delete_all_orders())


if __name__ == "__main__":
    sys.exit(main())
