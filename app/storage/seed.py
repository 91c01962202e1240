"""Database seeder for demo data."""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from app.business.statuses import UserRole
from app.storage.db import create_all, get_session
from app.storage.models import Category, Member, Partner, Product, SystemSetting, User
from app.observability.logging import ContextualLogger


logger = ContextualLogger(__name__)


DEMO_CATEGORIES = [
    {"code": "FOOD", "name": "Food and ingredients", "flow_type": "A", "sort_order": 1},
    {"code": "SUPPLY", "name": "Consumables", "flow_type": "A", "sort_order": 2},
    {"code": "EQUIP", "name": "Equipment", "flow_type": "B", "sort_order": 3},
]

DEMO_MEMBERS = [
    {"code": "M001", "name": "Sakura Dining", "payer_name": "SAKURA DINING", "email": "office@sakura.example"},
    {"code": "M002", "name": "Harbor Bistro", "payer_name": "HARBOR BISTRO", "email": "billing@harbor.example"},
]

DEMO_PARTNERS = [
    {
        "code": "P001",
        "name": "Fresh Farms Supply",
        "email": "sales@freshfarms.example",
        "bank_name": "Central Bank",
        "bank_branch": "Main",
        "bank_account_type": "ordinary",
        "bank_account_number": "1234567",
        "bank_account_name": "FRESH FARMS SUPPLY",
    },
    {
        "code": "P002",
        "name": "Kitchen Pro Equipment",
        "email": "orders@kitchenpro.example",
        "bank_name": "Harbor Trust",
        "bank_branch": "East",
        "bank_account_type": "ordinary",
        "bank_account_number": "7654321",
        "bank_account_name": "KITCHEN PRO EQUIPMENT",
    },
]

DEMO_PRODUCTS = [
    {"code": "FF-RICE-10", "name": "Rice 10kg", "partner": "P001", "category": "FOOD",
     "unit": "bag", "unit_price": Decimal("4200")},
    {"code": "FF-OIL-5", "name": "Frying oil 5L", "partner": "P001", "category": "SUPPLY",
     "unit": "can", "unit_price": Decimal("2800")},
    {"code": "KP-FRYER", "name": "Table fryer", "partner": "P002", "category": "EQUIP",
     "unit": "unit", "unit_price": Decimal("98000")},
]

DEMO_SETTINGS = {
    "company_name": ("Procurement Hub", "Name printed on documents"),
    "invoice_due_days": ("30", "Days until an invoice is due"),
    "support_email": ("support@procurement.example", "Contact shown to members and partners"),
}


async def seed_demo_data() -> None:
    """Seed database with demo organisations, catalogue and users."""
    logger.info("Starting database seeding")

    async with get_session() as db:
        existing = await db.execute(select(Member).limit(1))
        if existing.scalars().first():
            logger.info("Demo data already exists, skipping seeding")
            return

        categories = {}
        for data in DEMO_CATEGORIES:
            category = Category(**data)
            db.add(category)
            categories[data["code"]] = category

        members = {}
        for data in DEMO_MEMBERS:
            member = Member(**data)
            db.add(member)
            members[data["code"]] = member

        partners = {}
        for data in DEMO_PARTNERS:
            partner = Partner(**data)
            db.add(partner)
            partners[data["code"]] = partner

        await db.flush()

        for data in DEMO_PRODUCTS:
            values = dict(data)
            partner = partners[values.pop("partner")]
            category = categories[values.pop("category")]
            db.add(Product(partner_id=partner.id, category_id=category.id, **values))

        await _create_demo_users(db, members, partners)

        for key, (value, description) in DEMO_SETTINGS.items():
            db.add(SystemSetting(key=key, value=value, description=description))

        logger.info(
            "Database seeding completed successfully",
            members=len(members),
            partners=len(partners),
            products=len(DEMO_PRODUCTS)
        )


async def _create_demo_users(db, members: dict, partners: dict) -> None:
    """One administrator plus one user per member and partner."""
    logger.info("Creating demo users")

    db.add(User(
        email="admin@procurement.example",
        name="Hub Administrator",
        role=UserRole.ADMIN.value,
        supabase_user_id="demo-admin",
    ))
    for code, member in members.items():
        db.add(User(
            email=f"{code.lower()}@procurement.example",
            name=f"{member.name} buyer",
            role=UserRole.MEMBER.value,
            member_id=member.id,
            supabase_user_id=f"demo-{code.lower()}",
        ))
    for code, partner in partners.items():
        db.add(User(
            email=f"{code.lower()}@procurement.example",
            name=f"{partner.name} sales",
            role=UserRole.PARTNER.value,
            partner_id=partner.id,
            supabase_user_id=f"demo-{code.lower()}",
        ))
    await db.flush()


async def _main() -> None:
    await create_all()
    await seed_demo_data()


if __name__ == "__main__":
    asyncio.run(_main())
