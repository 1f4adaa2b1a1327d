"""
Order intake form

Holds the state of the public measurement form and submits it to the API.
The measurement inputs on offer are driven by the shared taxonomy: choosing a
category resets the style, and the style decides which measurement fields
exist.
"""

from __future__ import annotations
import logging
from datetime import date
from typing import Annotated, Any, Optional
import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from taxonomy import Category, MeasurementField, Subcategory, Taxonomy

logger = logging.getLogger(__name__)

MAX_MEASUREMENT = 100
BLOCKED_KEYS = set("eE+-")

REQUIRED_MESSAGES = {
    "shop_name": "Shop name is required",
    "delivery_date": "Required",
    "pickup_date": "Required",
    "category": "Select category",
    "subcategory": "Select subcategory",
}

MEASUREMENT_MESSAGES = {
    "greater_than_equal": "Min 0",
    "less_than_equal": "Max 100",
}
INVALID_NUMBER = "Enter a valid number"

Measurement = Annotated[float, Field(ge=0, le=MAX_MEASUREMENT, allow_inf_nan=False)]


class OrderForm(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    shop_name: str = ""
    client_name: Optional[str] = None
    client_number: Optional[str] = None
    delivery_date: str = ""
    pickup_date: str = ""
    category: str = ""
    subcategory: str = ""
    measurements: dict[str, Measurement] = Field(default_factory=dict)

    @field_validator("shop_name", "delivery_date", "pickup_date", "category", "subcategory")
    @classmethod
    def _required(cls, v: str, info: ValidationInfo) -> str:
        if not v:
            raise PydanticCustomError("required", REQUIRED_MESSAGES[info.field_name])
        return v

    @field_validator("client_number")
    @classmethod
    def _phone_length(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise PydanticCustomError("too_short", "Phone number must be at least 10 digits")
        return v


def _error_messages(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = err["loc"]
        key = ".".join(str(p) for p in loc)
        if loc and loc[0] == "measurements":
            errors[key] = MEASUREMENT_MESSAGES.get(err["type"], INVALID_NUMBER)
        else:
            errors[key] = err["msg"]
    return errors


def _as_number(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


def _server_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return f"Request failed with status code {response.status_code}"


class IntakeForm:
    def __init__(self, taxonomy: Taxonomy, client: httpx.AsyncClient, today: Optional[date] = None):
        today = today or date.today()
        self.taxonomy = taxonomy
        self.client = client

        self.shop_name = ""
        self.client_name = ""
        self.client_number = ""
        self.pickup_date: Optional[date] = today
        self.delivery_date: Optional[date] = today
        self.category_id = ""
        self.subcategory_id = ""
        self.measurements: dict[str, float] = {}

        self.errors: dict[str, str] = {}
        self.submitting = False
        self.message: Optional[str] = None
        self.error: Optional[str] = None
        self.order: Optional[dict[str, Any]] = None

    @property
    def category(self) -> Optional[Category]:
        return self.taxonomy.category(self.category_id) if self.category_id else None

    @property
    def subcategory(self) -> Optional[Subcategory]:
        cat = self.category
        return cat.subcategory(self.subcategory_id) if cat and self.subcategory_id else None

    @property
    def fields(self) -> tuple[MeasurementField, ...]:
        sub = self.subcategory
        return sub.measurements if sub else ()

    def select_category(self, category_id: str) -> None:
        if self.taxonomy.category(category_id) is None:
            raise ValueError(f"Unknown category {category_id!r}")
        self.category_id = category_id
        self.subcategory_id = ""
        self.measurements.clear()

    def select_subcategory(self, subcategory_id: str) -> None:
        cat = self.category
        if cat is None:
            raise ValueError("Choose category first")
        sub = cat.subcategory(subcategory_id)
        if sub is None:
            raise ValueError(f"Unknown style {subcategory_id!r} for category {cat.id!r}")
        self.subcategory_id = subcategory_id
        keys = set(sub.field_keys())
        self.measurements = {k: v for k, v in self.measurements.items() if k in keys}

    def _require_field(self, key: str) -> None:
        if key not in {f.key for f in self.fields}:
            raise KeyError(key)

    def set_measurement(self, key: str, value: float) -> None:
        self._require_field(key)
        self.measurements[key] = value

    def type_measurement(self, key: str, text: str) -> Optional[float]:
        """Apply text typed into a measurement input.

        Exponent and sign characters are swallowed and trailing characters are
        dropped while the number exceeds 100. Empty input clears the value;
        anything unparseable is kept as NaN so validation flags it.
        """
        self._require_field(key)
        text = "".join(ch for ch in text if ch not in BLOCKED_KEYS)
        while text:
            number = _as_number(text)
            if number is None or number <= MAX_MEASUREMENT:
                break
            text = text[:-1]
        if not text:
            self.measurements.pop(key, None)
            return None
        number = _as_number(text)
        value = float("nan") if number is None else number
        self.measurements[key] = value
        return value

    def is_delivery_date_allowed(self, day: date) -> bool:
        return self.pickup_date is None or day >= self.pickup_date

    def set_pickup_date(self, day: Optional[date]) -> None:
        self.pickup_date = day

    def set_delivery_date(self, day: Optional[date]) -> None:
        if day is not None and not self.is_delivery_date_allowed(day):
            raise ValueError("Delivery date cannot be before the pickup date")
        self.delivery_date = day

    def payload(self) -> dict[str, Any]:
        sub = self.subcategory
        keys = sub.field_keys() if sub else ()
        return {
            "shopName": self.shop_name,
            "clientName": self.client_name,
            "clientNumber": self.client_number,
            "deliveryDate": self.delivery_date.isoformat() if self.delivery_date else "",
            "pickupDate": self.pickup_date.isoformat() if self.pickup_date else "",
            "category": self.category_id,
            # Orders record the style by its display name
            "subcategory": sub.name if sub else "",
            "measurements": {k: self.measurements[k] for k in keys if k in self.measurements},
        }

    def validate(self) -> dict[str, str]:
        try:
            OrderForm.model_validate(self.payload())
        except ValidationError as e:
            self.errors = _error_messages(e)
        else:
            self.errors = {}
        return self.errors

    async def submit(self) -> Optional[dict[str, Any]]:
        if self.submitting:
            return None
        self.message = None
        self.error = None
        if self.validate():
            return None

        self.submitting = True
        try:
            resp = await self.client.post("/api/order", json=self.payload())
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.error = _server_message(e.response)
            logger.warning("Order submission rejected: %s", self.error)
            return None
        except httpx.HTTPError as e:
            self.error = str(e) or "Failed to submit order"
            logger.error("Order submission failed: %s", e)
            return None
        finally:
            self.submitting = False

        body = resp.json()
        self.message = body.get("message")
        self.order = body.get("order")
        return self.order
