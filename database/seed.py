# QueryGate - seed database with two demo tenants
import asyncio
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .database import init_db
from .models import Category, Item, Organisation, PurchaseOrder, PurchaseRequest, Site, User, Vendor

TENANT_ACME = "tenant-acme"
TENANT_GLOBEX = "tenant-globex"


async def seed(session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    if session_factory is None:
        session_factory = await init_db()
    async with session_factory() as session:
        # Check if already seeded
        r = await session.execute(select(User).limit(1))
        if r.scalar_one_or_none():
            print("Database already seeded. Skip.")
            return

        # Sites: two for Acme, one for Globex
        north = Site(id="site-north", tenant_id=TENANT_ACME, site_name="North Tower", location="Pune", code="NT")
        south = Site(id="site-south", tenant_id=TENANT_ACME, site_name="South Yard", location="Mumbai", code="SY")
        east = Site(id="site-east", tenant_id=TENANT_GLOBEX, site_name="East Plant", location="Delhi", code="EP")
        session.add_all([north, south, east])

        # Users: admin sees the whole tenant, store manager only North, janitor has no configured role
        session.add_all([
            User(id="u-admin", tenant_id=TENANT_ACME, username="acme_admin", role="superadmin", full_name="Asha Admin"),
            User(id="u-store", tenant_id=TENANT_ACME, username="acme_store", role="Store Manager",
                 full_name="Sam Store", sites=[north.id]),
            User(id="u-janitor", tenant_id=TENANT_ACME, username="acme_janitor", role="Janitor",
                 full_name="Jo Janitor", sites=[south.id]),
            User(id="u-globex", tenant_id=TENANT_GLOBEX, username="globex_admin", role="superadmin",
                 full_name="Gil Globex"),
        ])

        session.add_all([
            PurchaseOrder(tenant_id=TENANT_ACME, po_number="PO-1001", title="Cement", site=north.id,
                          status="approved", po_date=date(2025, 1, 10)),
            PurchaseOrder(tenant_id=TENANT_ACME, po_number="PO-1002", title="Steel rods", site=north.id,
                          status="pending", po_date=date(2025, 2, 3)),
            PurchaseOrder(tenant_id=TENANT_ACME, po_number="PO-2001", title="Paint", site=south.id,
                          status="approved", po_date=date(2025, 2, 20)),
            PurchaseOrder(tenant_id=TENANT_GLOBEX, po_number="PO-9001", title="Copper wire", site=east.id,
                          status="approved", po_date=date(2025, 1, 15)),
            PurchaseRequest(tenant_id=TENANT_ACME, purchase_request_number="PR-501", site=north.id, status="open"),
            PurchaseRequest(tenant_id=TENANT_GLOBEX, purchase_request_number="PR-901", site=east.id, status="open"),
        ])

        session.add_all([
            Vendor(tenant_id=TENANT_ACME, vendor_name="BuildMart", code="BM", email="sales@buildmart.example",
                   phone_number="+91-20-5550100", bank_account="ACME-BANK-001"),
            Vendor(tenant_id=TENANT_GLOBEX, vendor_name="WireWorks", code="WW", email="hi@wireworks.example",
                   bank_account="GLOBEX-BANK-001"),
            Item(tenant_id=TENANT_ACME, item_name="Cement 50kg", item_code="CEM-50", category="Civil", uom="bag"),
            Item(tenant_id=TENANT_ACME, item_name="TMT Bar 12mm", item_code="TMT-12", category="Steel", uom="kg"),
            Category(tenant_id=TENANT_ACME, name="Civil", code="CIV", type="material"),
            Organisation(tenant_id=TENANT_ACME, company_name="Acme Infra", code="ACME", gst_number="27AAAAA0000A1Z5"),
            Organisation(tenant_id=TENANT_GLOBEX, company_name="Globex Build", code="GLX"),
        ])
        await session.commit()
    print("Seed completed.")


if __name__ == "__main__":
    asyncio.run(seed())
