"""
Create a delivery-agent account for the courier console.

Run from the backend/ directory:
    python scripts/create_delivery_user.py John john@delivery.com password123 [+919800000001]
"""
import argparse
import asyncio
import os
import random
import sys

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import async_session, init_db
from domain.enums import Role
from domain.errors import DomainError
from services import user_service


async def create_delivery_user(first_name: str, email: str, password: str, phone: str | None) -> int:
    await init_db()
    phone = phone or f"+1{random.randint(1_000_000_000, 9_999_999_999)}"
    async with async_session() as db:
        try:
            user = await user_service.create_user(
                db,
                first_name=first_name,
                last_name="Delivery",
                phone=phone,
                email=email,
                password=password,
                role=Role.DELIVERY.value,
            )
        except DomainError as e:
            print(f"⚠️  {e.message}")
            return 1
        await db.commit()

    print("✅ Delivery user created successfully!")
    print("━" * 40)
    print(f"👤 Name: {user.full_name}")
    print(f"📧 Email: {email}")
    print(f"📱 Phone: {phone}")
    print(f"🔑 Password: {password}")
    print("━" * 40)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a delivery-agent account")
    parser.add_argument("first_name")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("phone", nargs="?")
    args = parser.parse_args()
    return asyncio.run(create_delivery_user(args.first_name, args.email, args.password, args.phone))


if __name__ == "__main__":
    sys.exit(main())
