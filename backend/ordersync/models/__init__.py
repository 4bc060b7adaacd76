from .user import User
from .business import Business, BusinessMember, MemberRole, MANAGER_ROLES
from .integration import Integration, IntegrationStatus, Provider
from .order import (
    Order,
    OrderStatus,
    SyncState,
    MANUAL_SOURCES,
    EXTERNAL_SOURCES,
    provider_for_source,
)
from .order_event import OrderEvent, EventType

__all__ = [
    "User",
    "Business",
    "BusinessMember",
    "MemberRole",
    "MANAGER_ROLES",
    "Integration",
    "IntegrationStatus",
    "Provider",
    "Order",
    "OrderStatus",
    "SyncState",
    "MANUAL_SOURCES",
    "EXTERNAL_SOURCES",
    "provider_for_source",
    "OrderEvent",
    "EventType",
]
