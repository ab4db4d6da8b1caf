# QueryGate database
from .models import (
    Base,
    User,
    Project,
    PurchaseOrder,
    PurchaseRequest,
    SiteInventory,
    Site,
    Vendor,
    Item,
    DmrEntry,
    DebitNote,
    RateApproval,
    Category,
    Organisation,
)
from .database import init_db, get_session_factory

__all__ = [
    "Base",
    "User",
    "Project",
    "PurchaseOrder",
    "PurchaseRequest",
    "SiteInventory",
    "Site",
    "Vendor",
    "Item",
    "DmrEntry",
    "DebitNote",
    "RateApproval",
    "Category",
    "Organisation",
    "init_db",
    "get_session_factory",
]
