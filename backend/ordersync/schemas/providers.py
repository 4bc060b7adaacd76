"""
Webhook payload shapes, one model per marketplace.

A payload has to parse into its provider's model before it is normalized.
Only the correlation ids are mandatory; everything else falls back to
empty values the way the marketplaces omit them on test/ping deliveries.
"""
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Type
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from ordersync.core.exceptions import ValidationError
from ordersync.models.integration import Provider
from ordersync.models.order import OrderStatus


def _coerce_id(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _require_id(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


ExternalId = Annotated[str, BeforeValidator(_coerce_id), AfterValidator(_require_id)]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")

    provider: ClassVar[Provider]

    @property
    def store_id(self) -> str:
        raise NotImplementedError

    @property
    def external_order_id(self) -> str:
        raise NotImplementedError

    def terminal_status(self) -> Optional[OrderStatus]:
        """Cancellation or completion reported by the provider, if any"""
        raise NotImplementedError

    def receipt_summary(self) -> Dict[str, Any]:
        raise NotImplementedError


# ---------------------------------------------------------------- Uber Eats

class UberAmount(BaseModel):
    model_config = ConfigDict(extra="allow")

    amount: int = 0
    currency_code: Optional[str] = None


class UberCharges(BaseModel):
    model_config = ConfigDict(extra="allow")

    subtotal: UberAmount = Field(default_factory=UberAmount)
    tax: UberAmount = Field(default_factory=UberAmount)
    total: UberAmount = Field(default_factory=UberAmount)


class UberPayment(BaseModel):
    model_config = ConfigDict(extra="allow")

    charges: UberCharges = Field(default_factory=UberCharges)


class UberCartItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    quantity: int = 1
    price: int = 0
    special_instructions: Optional[str] = None


class UberCart(BaseModel):
    model_config = ConfigDict(extra="allow")

    items: List[UberCartItem] = Field(default_factory=list)


class UberEater(BaseModel):
    model_config = ConfigDict(extra="allow")

    first_name: Optional[str] = None
    phone: Optional[str] = None


UBER_CANCELLED_STATES = frozenset({"CANCELED", "CANCELLED", "DENIED"})
UBER_COMPLETED_STATES = frozenset({"COMPLETED", "DELIVERED"})
UBER_CANCEL_EVENTS = frozenset({"orders.cancel"})


class UberEatsOrderPayload(_Payload):
    provider: ClassVar[Provider] = Provider.UBER_EATS

    store_id_: ExternalId = Field(alias="store_id")
    order_id: ExternalId
    display_id: Optional[str] = None
    event_type: Optional[str] = None
    current_state: Optional[str] = None
    created_at: Optional[str] = None
    eater: UberEater = Field(default_factory=UberEater)
    cart: UberCart = Field(default_factory=UberCart)
    payment: UberPayment = Field(default_factory=UberPayment)

    @property
    def store_id(self) -> str:
        return self.store_id_

    @property
    def external_order_id(self) -> str:
        return self.order_id

    def terminal_status(self) -> Optional[OrderStatus]:
        state = (self.current_state or "").upper()
        if state in UBER_CANCELLED_STATES or self.event_type in UBER_CANCEL_EVENTS:
            return OrderStatus.CANCELLED
        if state in UBER_COMPLETED_STATES:
            return OrderStatus.COMPLETED
        return None

    def receipt_summary(self) -> Dict[str, Any]:
        return {"external_order_id": self.order_id, "event": self.event_type}


# ----------------------------------------------------------------- DoorDash

class DoorDashOption(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""


class DoorDashItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    quantity: int = 1
    price: int = 0
    options: List[DoorDashOption] = Field(default_factory=list)


class DoorDashConsumer(BaseModel):
    model_config = ConfigDict(extra="allow")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    should_leave_at_door: bool = False


DOORDASH_CANCELLED_STATES = frozenset({"CANCELLED", "CANCELED"})
DOORDASH_COMPLETED_STATES = frozenset({"DELIVERED", "COMPLETED"})


class DoorDashOrderPayload(_Payload):
    provider: ClassVar[Provider] = Provider.DOORDASH

    merchant_id: ExternalId
    id: ExternalId
    status: Optional[str] = None
    created_at: Optional[str] = None
    currency: Optional[str] = None
    consumer: DoorDashConsumer = Field(default_factory=DoorDashConsumer)
    items: List[DoorDashItem] = Field(default_factory=list)
    subtotal: Optional[int] = None
    tax_amount: int = 0
    order_total: int = 0

    @property
    def store_id(self) -> str:
        return self.merchant_id

    @property
    def external_order_id(self) -> str:
        return self.id

    def terminal_status(self) -> Optional[OrderStatus]:
        state = (self.status or "").upper()
        if state in DOORDASH_CANCELLED_STATES:
            return OrderStatus.CANCELLED
        if state in DOORDASH_COMPLETED_STATES:
            return OrderStatus.COMPLETED
        return None

    def receipt_summary(self) -> Dict[str, Any]:
        return {"external_order_id": self.id, "status": self.status}


PAYLOAD_MODELS: Dict[Provider, Type[_Payload]] = {
    Provider.UBER_EATS: UberEatsOrderPayload,
    Provider.DOORDASH: DoorDashOrderPayload,
}

ProviderPayload = _Payload


def parse_provider_payload(provider: Provider, data: Any) -> ProviderPayload:
    """
    Parse a decoded webhook body into the provider's payload model.

    Raises:
        ValidationError: unknown provider, non-object body or missing correlation ids
    """
    model = PAYLOAD_MODELS.get(Provider(provider))
    if model is None:
        raise ValidationError(f"Unsupported provider: {provider}")
    if not isinstance(data, dict):
        raise ValidationError("Webhook body is not a JSON object")

    try:
        return model.model_validate(data)
    except SchemaError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise ValidationError(f"Unrecognized {provider} payload: invalid {', '.join(fields)}")
