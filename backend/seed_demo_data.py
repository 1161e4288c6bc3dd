"""
Safe auto-seeding system for demo data.

This module provides idempotent seeding that:
- Only runs if the document store holds no businesses
- Writes the same camelCase documents the SmartStock apps write
- Can be controlled via the SEED_DEMO_DATA setting
- Safe to run multiple times (won't overwrite existing data)
"""
import logging
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from auth import get_account_by_email, get_password_hash
from document_store import (
    DocumentStore,
    COLLECTION_BUSINESSES,
    COLLECTION_BRANCHES,
    COLLECTION_USERS,
    COLLECTION_PAYMENTS,
    COLLECTION_TRANSACTIONS,
    COLLECTION_PRODUCTS,
)
from models import AuthAccount, AuthProvider, UserRole

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = "admin@smartstock.demo"
DEMO_ADMIN_PASSWORD = "admin123"


def _iso(moment: datetime) -> str:
    return moment.replace(microsecond=0).isoformat() + "Z"


async def is_store_empty(db: AsyncSession) -> bool:
    """The store counts as empty while it has no businesses"""
    return await DocumentStore(db).count(COLLECTION_BUSINESSES) == 0


async def ensure_demo_admin(db: AsyncSession) -> str:
    """Create the demo super admin login (and profile) unless it exists"""
    store = DocumentStore(db)
    account = await get_account_by_email(db, DEMO_ADMIN_EMAIL)

    if account is None:
        account = AuthAccount(
            uid="demo-super-admin",
            email=DEMO_ADMIN_EMAIL,
            hashed_password=get_password_hash(DEMO_ADMIN_PASSWORD),
            provider=AuthProvider.PASSWORD.value,
            is_active=True
        )
        db.add(account)
        await db.commit()
        logger.info(f"✓ Created demo super admin: {DEMO_ADMIN_EMAIL}")

    if await store.get(COLLECTION_USERS, account.uid) is None:
        await store.set(COLLECTION_USERS, account.uid, {
            "email": DEMO_ADMIN_EMAIL,
            "fullName": "Demo Administrator",
            "role": UserRole.SUPER_ADMIN.value,
            "isActive": True,
            "createdAt": _iso(datetime.utcnow()),
        })

    return account.uid


async def seed_demo_documents(db: AsyncSession, now: datetime = None):
    """
    Seed two demo businesses with branches, staff, stock, payments and
    activity logs. Dates are spread over the last few months so the
    dashboard charts have something to show.
    """
    store = DocumentStore(db)
    now = now or datetime.utcnow()

    # Businesses and their owners
    await store.set(COLLECTION_USERS, "owner-kigali-fresh", {
        "firstName": "Aline", "lastName": "Uwase", "email": "aline@kigalifresh.rw",
        "phone": "+250788100200", "role": UserRole.ADMIN.value, "isActive": True,
        "businessId": "biz-kigali-fresh", "branch": "br-kf-nyarugenge",
        "createdAt": _iso(now - timedelta(days=150)),
    })
    await store.set(COLLECTION_USERS, "owner-huye-hardware", {
        "fullName": "Jean Habimana", "email": "jean@huyehardware.rw",
        "phone": "+250788300400", "role": UserRole.ADMIN.value, "isActive": True,
        "businessId": "biz-huye-hardware",
        "createdAt": _iso(now - timedelta(days=60)),
    })

    await store.set(COLLECTION_BUSINESSES, "biz-kigali-fresh", {
        "businessName": "Kigali Fresh Market", "ownerId": "owner-kigali-fresh",
        "district": "Nyarugenge", "sector": "Nyamirambo", "phone": "+250788100200",
        "email": "hello@kigalifresh.rw", "isActive": True,
        "subscription": {
            "plan": "month", "status": "active",
            "startDate": _iso(now - timedelta(days=25)),
            "endDate": _iso(now + timedelta(days=5)),
        },
        "createdAt": _iso(now - timedelta(days=150)),
    })
    await store.set(COLLECTION_BUSINESSES, "biz-huye-hardware", {
        "businessName": "Huye Hardware", "ownerId": "owner-huye-hardware",
        "district": "Huye", "sector": "Ngoma", "isActive": False,
        "subscription": {"plan": "free", "status": "active"},
        "createdAt": _iso(now - timedelta(days=60)),
    })

    # Branches
    await store.set(COLLECTION_BRANCHES, "br-kf-nyarugenge", {
        "branchName": "Nyarugenge Main", "businessId": "biz-kigali-fresh",
        "district": "Nyarugenge", "sector": "Nyamirambo", "isActive": True,
        "createdAt": _iso(now - timedelta(days=150)),
    })
    await store.set(COLLECTION_BRANCHES, "br-kf-kicukiro", {
        "branchName": "Kicukiro Outlet", "businessId": "biz-kigali-fresh",
        "district": "Kicukiro", "sector": "Gikondo",
        "createdAt": _iso(now - timedelta(days=40)),
    })

    # Staff
    await store.set(COLLECTION_USERS, "staff-kf-eric", {
        "firstName": "Eric", "lastName": "Mugisha", "email": "eric@kigalifresh.rw",
        "phone": "+250788500600", "role": UserRole.STAFF.value, "isActive": True,
        "businessId": "biz-kigali-fresh", "branch": "br-kf-kicukiro",
        "createdAt": _iso(now - timedelta(days=30)),
    })

    # Stock: one sold item today, one deleted item this week
    await store.set(COLLECTION_PRODUCTS, "prod-kf-rice", {
        "productName": "Rice 25kg", "category": "Grains", "businessId": "biz-kigali-fresh",
        "branch": "br-kf-nyarugenge", "status": "sold", "quantity": 4,
        "costPrice": 18000, "sellingPrice": 21000,
        "soldDate": _iso(now), "addedDate": _iso(now - timedelta(days=10)),
    })
    await store.set(COLLECTION_PRODUCTS, "prod-kf-milk", {
        "productName": "Fresh Milk 1L", "category": "Dairy", "businessId": "biz-kigali-fresh",
        "branch": "br-kf-kicukiro", "status": "deleted", "quantity": 6,
        "costPricePerUnit": 800, "sellPrice": 1000,
        "updatedAt": _iso(now - timedelta(days=1)),
    })
    await store.set(COLLECTION_PRODUCTS, "prod-kf-beans", {
        "productName": "Beans 5kg", "category": "Grains", "businessId": "biz-kigali-fresh",
        "branch": "br-kf-nyarugenge", "status": "store", "quantity": 20,
        "costPrice": 4500, "sellingPrice": 5200,
        "addedDate": _iso(now - timedelta(days=3)),
    })

    # Payments: one approved last month, one awaiting review
    await store.set(COLLECTION_PAYMENTS, "pay-kf-001", {
        "businessId": "biz-kigali-fresh", "businessName": "Kigali Fresh Market",
        "userId": "owner-kigali-fresh", "amount": 15000, "currency": "RWF",
        "method": "MTN MoMo", "plan": "month", "status": "approved",
        "createdAt": _iso(now - timedelta(days=30)), "approvedAt": _iso(now - timedelta(days=29)),
    })
    await store.set(COLLECTION_PAYMENTS, "pay-hh-001", {
        "businessId": "biz-huye-hardware", "userId": "owner-huye-hardware",
        "amount": 150000, "currency": "RWF", "method": "Bank Transfer",
        "plan": "year", "status": "pending",
        "createdAt": _iso(now - timedelta(hours=6)),
    })

    # Platform activity
    await store.set(COLLECTION_TRANSACTIONS, "log-kf-sale", {
        "action": "Product Sold", "transactionType": "sale",
        "details": "Sold 4 x Rice 25kg", "userName": "Aline Uwase",
        "userEmail": "aline@kigalifresh.rw", "userRole": UserRole.ADMIN.value,
        "userId": "owner-kigali-fresh", "businessId": "biz-kigali-fresh",
        "businessName": "Kigali Fresh Market", "branchId": "br-kf-nyarugenge",
        "branchName": "Nyarugenge Main", "productName": "Rice 25kg", "category": "Grains",
        "quantity": 4, "costPrice": 18000, "sellingPrice": 21000, "profit": 12000,
        "createdAt": _iso(now),
    })
    await store.set(COLLECTION_TRANSACTIONS, "log-hh-payment", {
        "action": "Payment Failed", "transactionType": "payment",
        "details": "Mobile money request timed out", "userName": "Jean Habimana",
        "userEmail": "jean@huyehardware.rw", "userId": "owner-huye-hardware",
        "businessId": "biz-huye-hardware", "businessName": "Huye Hardware",
        "createdAt": _iso(now - timedelta(days=2)),
    })
    await store.set(COLLECTION_TRANSACTIONS, "log-system-backup", {
        "action": "System Backup", "transactionType": "system",
        "details": "Daily backup completed", "userName": "System",
        "createdAt": _iso(now - timedelta(days=1)),
    })


async def seed_demo_data_on_startup(db: AsyncSession):
    """
    Main entry point for auto-seeding demo data on app startup.

    Behavior:
    - Controlled by the SEED_DEMO_DATA setting (default: off)
    - Only runs if the store has no businesses
    - Idempotent - safe to call multiple times
    """
    if not settings.SEED_DEMO_DATA:
        logger.info("Demo data seeding disabled via SEED_DEMO_DATA=false")
        return

    if not await is_store_empty(db):
        logger.info("Document store contains platform data - skipping demo data seed")
        return

    logger.info("=" * 60)
    logger.info("Document store is empty - seeding demo data...")
    logger.info("=" * 60)

    await ensure_demo_admin(db)
    await seed_demo_documents(db)

    logger.info("=" * 60)
    logger.info("✅ Demo data seeding completed successfully!")
    logger.info(f"   Super admin login: {DEMO_ADMIN_EMAIL} / {DEMO_ADMIN_PASSWORD}")
    logger.info("=" * 60)
