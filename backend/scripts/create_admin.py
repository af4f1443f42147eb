"""
Create the first admin account for the admin console.

Run from the backend/ directory:
    python scripts/create_admin.py
    python scripts/create_admin.py --email owner@sejas.com --password s3cret --phone +919800000000
"""
import argparse
import asyncio
import os
import sys

from sqlalchemy import or_, select

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import async_session, init_db
from db_models import User
from domain.enums import Role
from services import user_service


async def create_admin(email: str, password: str, phone: str, first_name: str) -> int:
    await init_db()
    async with async_session() as db:
        res = await db.execute(
            select(User).where(or_(User.email == email.lower(), User.role == Role.ADMIN.value))
        )
        existing = res.scalars().first()
        if existing:
            print("⚠️  Admin user already exists!")
            print(f"   Email: {existing.email}")
            print("   To reset the password, delete the admin user first or update it manually.")
            return 0

        await user_service.create_user(
            db,
            first_name=first_name,
            last_name="User",
            phone=phone,
            email=email,
            password=password,
            role=Role.ADMIN.value,
        )
        await db.commit()

    print("✅ Admin user created successfully!")
    print("━" * 40)
    print(f"📧 Email: {email}")
    print(f"🔑 Password: {password}")
    print("━" * 40)
    print("⚠️  IMPORTANT: Change the password after first login!")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the admin console account")
    parser.add_argument("--email", default="admin@sejas.com")
    parser.add_argument("--password", default="admin123")
    parser.add_argument("--phone", default="+1234567890")
    parser.add_argument("--first-name", default="Admin")
    args = parser.parse_args()
    return asyncio.run(create_admin(args.email, args.password, args.phone, args.first_name))


if __name__ == "__main__":
    sys.exit(main())
