"""
Marketplace payload -> canonical OrderDraft

Amounts arrive in minor units (cents) and leave as Decimal major units.
Payloads are already validated by ordersync.schemas.providers, so the
mappers only deal with values that are present or defaulted.
"""
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from ordersync.core.config import PROVIDER_CONFIGS
from ordersync.core.exceptions import ValidationError
from ordersync.models.integration import Provider
from ordersync.schemas.orders import DraftItem, DraftTotals, OrderDraft
from ordersync.schemas.providers import (
    DoorDashOrderPayload,
    ProviderPayload,
    UberEatsOrderPayload,
    parse_provider_payload,
)

DEFAULT_CURRENCY = "CAD"
UBER_GUEST_NAME = "Uber Guest"
CENT = Decimal("0.01")


def from_minor_units(amount: Optional[int]) -> Decimal:
    """1599 -> Decimal('15.99')"""
    return (Decimal(amount or 0) / Decimal(100)).quantize(CENT)


def _source_label(provider: Provider) -> str:
    return PROVIDER_CONFIGS[provider.value]["source"]


def _normalize_uber_eats(payload: UberEatsOrderPayload) -> OrderDraft:
    charges = payload.payment.charges
    items = [
        DraftItem(
            name=item.title,
            qty=item.quantity,
            price=from_minor_units(item.price),
            notes=item.special_instructions or None,
        )
        for item in payload.cart.items
    ]
    currency = charges.total.currency_code or charges.subtotal.currency_code or DEFAULT_CURRENCY

    return OrderDraft(
        source=_source_label(Provider.UBER_EATS),
        provider=Provider.UBER_EATS,
        external_order_id=payload.order_id,
        external_store_id=payload.store_id,
        customer_name=payload.eater.first_name or UBER_GUEST_NAME,
        customer_phone=payload.eater.phone or None,
        notes=f"Uber #{payload.display_id}" if payload.display_id else None,
        items=items,
        totals=DraftTotals(
            subtotal=from_minor_units(charges.subtotal.amount),
            tax=from_minor_units(charges.tax.amount),
            total=from_minor_units(charges.total.amount),
            currency=currency,
        ),
        placed_at=payload.created_at,
        terminal_status=payload.terminal_status(),
    )


def _normalize_doordash(payload: DoorDashOrderPayload) -> OrderDraft:
    consumer = payload.consumer
    items = [
        DraftItem(
            name=item.name,
            qty=item.quantity,
            price=from_minor_units(item.price),
            notes=", ".join(o.name for o in item.options if o.name) or None,
        )
        for item in payload.items
    ]

    # DoorDash only sends a subtotal on some order types
    subtotal = payload.subtotal
    if subtotal is None:
        subtotal = sum(item.price * item.quantity for item in payload.items)

    full_name = " ".join(part for part in (consumer.first_name, consumer.last_name) if part)

    return OrderDraft(
        source=_source_label(Provider.DOORDASH),
        provider=Provider.DOORDASH,
        external_order_id=payload.id,
        external_store_id=payload.merchant_id,
        customer_name=full_name or None,
        customer_phone=consumer.phone_number or None,
        notes="Leave at door" if consumer.should_leave_at_door else None,
        items=items,
        totals=DraftTotals(
            subtotal=from_minor_units(subtotal),
            tax=from_minor_units(payload.tax_amount),
            total=from_minor_units(payload.order_total),
            currency=payload.currency or DEFAULT_CURRENCY,
        ),
        placed_at=payload.created_at,
        terminal_status=payload.terminal_status(),
    )


class PayloadNormalizer:
    """Dispatches a parsed payload to its provider's mapper"""

    _mappers: Dict[Provider, Callable[[Any], OrderDraft]] = {
        Provider.UBER_EATS: _normalize_uber_eats,
        Provider.DOORDASH: _normalize_doordash,
    }

    def normalize(self, payload: ProviderPayload) -> OrderDraft:
        mapper = self._mappers.get(payload.provider)
        if mapper is None:
            raise ValidationError(f"No normalizer for provider {payload.provider}")
        return mapper(payload)

    def normalize_raw(self, provider: Provider, data: Any) -> OrderDraft:
        """Validate and normalize a decoded JSON body in one step"""
        return self.normalize(parse_provider_payload(provider, data))
