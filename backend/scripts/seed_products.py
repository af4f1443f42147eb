"""
Seed the product catalogue. Products that already exist (by name) are skipped.

Run from the backend/ directory:
    python scripts/seed_products.py
"""
import asyncio
import os
import sys

from sqlalchemy import select

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import async_session, init_db
from db_models import Product
from services import product_service


def _product(name, description, price, discounted_price, category, subcategory, rating, count,
             delivery_time, quantity, tags, discount_percentage=None):
    return {
        "name": name,
        "description": description,
        "price": price,
        "discounted_price": discounted_price,
        "category": category,
        "subcategory": subcategory,
        "rating": rating,
        "ratings_average": rating,
        "ratings_count": count,
        "delivery_time": delivery_time,
        "is_active": True,
        "in_stock": True,
        "stock_quantity": quantity,
        "weight_value": 1.0,
        "weight_unit": "kg",
        "discount_percentage": discount_percentage,
        "preparation_method": "Fresh",
        "image": f"{name.lower().replace(' ', '-')}.jpg",
        "tags": tags,
    }


NEXT_DAY = "Next day by 6:00 AM"
INSTANT = "30 min"

PRODUCTS = [
    # Premium cuts
    _product("Loin", "Premium loin cut, tender and flavorful. Perfect for special occasions.",
             1500, 1200, "premium", "steak", 4.8, 150, NEXT_DAY, 25,
             ["premium", "fresh", "organic", "tender"], 20),
    _product("Shank", "Premium shank cut, perfect for slow cooking and braising.",
             1400, 1100, "premium", "roast", 4.7, 120, NEXT_DAY, 30,
             ["premium", "braising", "slow-cook"], 21),
    _product("Brisket", "Premium brisket, ideal for smoking and barbecue.",
             1300, 1050, "premium", "roast", 4.6, 110, NEXT_DAY, 30,
             ["premium", "bbq", "smoking"], 19),
    _product("Chuck", "Well-marbled chuck cut for roasts and stews.",
             1200, 950, "premium", "roast", 4.5, 90, NEXT_DAY, 30,
             ["premium", "stew", "roast"], 21),
    _product("Tenderloin", "The most tender cut, lean and buttery.",
             1500, 1250, "premium", "steak", 4.9, 180, NEXT_DAY, 20,
             ["premium", "lean", "tender"], 17),
    _product("Ribeye Steak", "Richly marbled ribeye for grilling.",
             1400, 1150, "premium", "steak", 4.8, 160, NEXT_DAY, 30,
             ["premium", "marbled", "grilling"], 21),
    # Instant deliverables
    _product("Beef", "Fresh premium beef, perfect for any recipe. Delivered within 30 minutes.",
             400, 400, "normal", "beef", 4.8, 250, INSTANT, 100, ["fresh", "instant", "beef"]),
    _product("Buffalo Liver", "Fresh buffalo liver, rich in nutrients. Delivered within 30 minutes.",
             400, 400, "normal", "organ", 4.8, 150, INSTANT, 60, ["fresh", "instant", "organ", "liver"]),
    _product("Buffalo Brain", "Fresh buffalo brain, delicacy meat. Delivered within 30 minutes.",
             400, 400, "normal", "organ", 4.8, 120, INSTANT, 40, ["fresh", "instant", "organ", "brain"]),
    # Everyday cuts
    _product("Boti", "Traditional boti cut, perfect for kebabs and curries.",
             800, 650, "normal", "curry", 4.5, 200, NEXT_DAY, 50, ["curry", "kebab", "traditional"]),
    _product("Beef Brisket", "Everyday brisket for slow-cooked curries.",
             900, 750, "normal", "curry", 4.4, 140, NEXT_DAY, 40, ["curry", "slow-cook"]),
    _product("Short Ribs", "Meaty short ribs for braising.",
             850, 700, "normal", "ribs", 4.5, 95, NEXT_DAY, 35, ["ribs", "braising"]),
    _product("Ground Chuck", "Freshly ground chuck for burgers and keema.",
             600, 520, "normal", "mince", 4.6, 210, NEXT_DAY, 60, ["mince", "burger", "keema"]),
    # Exclusive
    _product("Flank Steak", "Lean, flavourful flank for fajitas and stir-fries.",
             950, 800, "exclusive", "steak", 4.6, 70, NEXT_DAY, 15, ["exclusive", "lean", "grilling"]),
    _product("Skirt Steak", "Chef's favourite skirt steak, limited stock.",
             880, 760, "exclusive", "steak", 4.7, 65, NEXT_DAY, 15, ["exclusive", "grilling"]),
]


async def seed() -> int:
    await init_db()
    created = skipped = 0
    async with async_session() as db:
        for fields in PRODUCTS:
            res = await db.execute(select(Product.id).where(Product.name == fields["name"]))
            if res.scalar_one_or_none() is not None:
                print(f"⏭️  Skipped: {fields['name']} (already exists)")
                skipped += 1
                continue
            await product_service.create_product(db, fields=dict(fields))
            print(f"✅ Created: {fields['name']}")
            created += 1
        await db.commit()

    print(f"\n🌱 Seeding complete: {created} created, {skipped} skipped")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(seed()))
