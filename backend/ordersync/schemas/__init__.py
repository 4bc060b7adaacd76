from .providers import (
    ProviderPayload,
    UberEatsOrderPayload,
    DoorDashOrderPayload,
    parse_provider_payload,
)
from .orders import OrderDraft, DraftItem, DraftTotals

__all__ = [
    "ProviderPayload",
    "UberEatsOrderPayload",
    "DoorDashOrderPayload",
    "parse_provider_payload",
    "OrderDraft",
    "DraftItem",
    "DraftTotals",
]
