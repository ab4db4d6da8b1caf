# QueryGate - operational store tables (every row belongs to one tenant)
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, Float, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class TenantOwned:
    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False, index=True)


class User(TenantOwned, Base):
    """Caller profile used to complete token claims. Not a queryable resource."""
    __tablename__ = "users"
    username = Column(String(64), unique=True, nullable=False, index=True)
    role = Column(String(64), nullable=False, default="default")
    full_name = Column(String(128), nullable=True)
    sites = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"


class Project(TenantOwned, Base):
    __tablename__ = "projects"
    project_name = Column(String(128), nullable=False)
    project_date = Column(Date, nullable=True)
    location = Column(String(128), nullable=True)
    image_url = Column(String(256), nullable=True)
    r0_date = Column(Date, nullable=True)
    r1_date = Column(Date, nullable=True)
    r2_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class PurchaseOrder(TenantOwned, Base):
    __tablename__ = "purchase_orders"
    po_number = Column(String(32), nullable=False, index=True)
    purchase_request_number = Column(String(32), nullable=True)
    pr_type = Column(String(32), nullable=True)
    order_type = Column(String(32), nullable=True)
    title = Column(String(256), nullable=True)
    site = Column(String(36), nullable=True, index=True)
    status = Column(String(32), nullable=True)
    date = Column(Date, nullable=True)
    po_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    approved_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<PurchaseOrder(id={self.id}, po_number={self.po_number})>"


class PurchaseRequest(TenantOwned, Base):
    __tablename__ = "purchase_requests"
    purchase_request_number = Column(String(32), nullable=False, index=True)
    site = Column(String(36), nullable=True, index=True)
    status = Column(String(32), nullable=True)
    date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class SiteInventory(TenantOwned, Base):
    __tablename__ = "site_inventory"
    item_id = Column(String(36), nullable=False)
    site_id = Column(String(36), nullable=False, index=True)
    stock_quantity = Column(Float, nullable=False, default=0.0)
    inventory_type = Column(String(32), nullable=True)
    date = Column(Date, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow)


class Site(TenantOwned, Base):
    __tablename__ = "sites"
    site_name = Column(String(128), nullable=False)
    location = Column(String(128), nullable=True)
    code = Column(String(32), nullable=True)
    address = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    updated_by = Column(String(64), nullable=True)

    def __repr__(self):
        return f"<Site(id={self.id}, site_name={self.site_name})>"


class Vendor(TenantOwned, Base):
    __tablename__ = "vendors"
    vendor_name = Column(String(128), nullable=False)
    code = Column(String(32), nullable=True)
    email = Column(String(128), nullable=True)
    phone_number = Column(String(32), nullable=True)
    # never allowlisted; present so tests can prove it cannot be reached
    bank_account = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class Item(TenantOwned, Base):
    __tablename__ = "items"
    item_name = Column(String(128), nullable=False)
    item_number = Column(String(32), nullable=True)
    item_code = Column(String(32), nullable=True)
    category = Column(String(64), nullable=True)
    sub_category = Column(String(64), nullable=True)
    uom = Column(String(16), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class DmrEntry(TenantOwned, Base):
    __tablename__ = "dmr_entries"
    dmr_no = Column(String(32), nullable=False)
    site = Column(String(36), nullable=True, index=True)
    status = Column(String(32), nullable=True)
    dmr_date = Column(Date, nullable=True)
    gate_entry_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class DebitNote(TenantOwned, Base):
    __tablename__ = "debit_notes"
    debit_note_number = Column(String(32), nullable=False)
    debit_entry_number = Column(String(32), nullable=True)
    site = Column(String(36), nullable=True, index=True)
    status = Column(String(32), nullable=True)
    po_number = Column(String(32), nullable=True)
    vendor_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class RateApproval(TenantOwned, Base):
    __tablename__ = "rate_approvals"
    site = Column(String(36), nullable=True, index=True)
    status = Column(String(32), nullable=True)
    date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class Category(TenantOwned, Base):
    __tablename__ = "categories"
    name = Column(String(64), nullable=False)
    code = Column(String(32), nullable=True)
    type = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class Organisation(TenantOwned, Base):
    __tablename__ = "organisations"
    company_name = Column(String(128), nullable=False)
    code = Column(String(32), nullable=True)
    contact_person = Column(String(128), nullable=True)
    phone_number = Column(String(32), nullable=True)
    gst_number = Column(String(32), nullable=True)
    pan_number = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)
