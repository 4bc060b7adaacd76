"""
Canonical order draft produced by the normalizer, independent of the marketplace
"""
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from ordersync.models.integration import Provider
from ordersync.models.order import OrderStatus


class DraftItem(BaseModel):
    name: str
    qty: int = 1
    price: Decimal = Decimal("0")
    notes: Optional[str] = None


class DraftTotals(BaseModel):
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    currency: str = "CAD"


class OrderDraft(BaseModel):
    """Order as it will be written to the orders table. Amounts are in major units."""

    source: str
    provider: Provider
    external_order_id: str
    external_store_id: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    items: List[DraftItem] = Field(default_factory=list)
    totals: DraftTotals = Field(default_factory=DraftTotals)
    placed_at: Optional[str] = None
    # cancelled/completed when the provider reported a terminal state
    terminal_status: Optional[OrderStatus] = None

    @property
    def description(self) -> str:
        return ", ".join(f"{item.qty}x {item.name}" for item in self.items)
