"""Intake state models.

ChatState is an immutable, sparse snapshot: every field is optional and stays
None until confidently detected. Engine functions never mutate a snapshot,
they return a new one via ``ChatState.replace``.
"""

import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal

ShippingType = Literal["individual", "bulk", "unknown"]
BrandingType = Literal["embroidery", "laser", "insert", "sticker", "none", "unknown"]
DistributionTiming = Literal["all_at_once", "over_time", "unknown"]
AddressHandling = Literal["provided", "handled_by_us", "unknown"]
ComplexityMode = Literal["streamlined", "assisted", "high_touch"]

SHIPPING_TYPES: frozenset[str] = frozenset({"individual", "bulk", "unknown"})
BRANDING_TYPES: frozenset[str] = frozenset(
    {"embroidery", "laser", "insert", "sticker", "none", "unknown"}
)
DISTRIBUTION_TIMINGS: frozenset[str] = frozenset({"all_at_once", "over_time", "unknown"})
ADDRESS_HANDLINGS: frozenset[str] = frozenset({"provided", "handled_by_us", "unknown"})

# Python attribute -> wire key (camelCase, also used as missing-field keys)
WIRE_KEYS: dict[str, str] = {
    "quantity": "quantity",
    "budget_per_unit_usd": "budgetPerUnitUsd",
    "shipping_type": "shippingType",
    "branding": "branding",
    "international": "international",
    "email": "email",
    "phone": "phone",
    "deadline_text": "deadlineText",
    "distribution_timing": "distributionTiming",
    "address_handling": "addressHandling",
    "branding_needs_qualification": "brandingNeedsQualification",
}

_ENUM_VALUES: dict[str, frozenset[str]] = {
    "shipping_type": SHIPPING_TYPES,
    "branding": BRANDING_TYPES,
    "distribution_timing": DISTRIBUTION_TIMINGS,
    "address_handling": ADDRESS_HANDLINGS,
}

_BOOL_FIELDS = {"international", "branding_needs_qualification"}
_STR_FIELDS = {"email", "phone", "deadline_text"}


@dataclass(frozen=True)
class ChatState:
    """Order profile collected so far.

    All fields are optional; absent fields are None. ``international`` is
    only set True by keyword inference, explicit negative answers set False.
    ``distribution_timing`` is meaningful only for bulk shipping and
    ``address_handling`` only for individual shipping.
    """

    quantity: int | None = None
    budget_per_unit_usd: float | None = None
    shipping_type: ShippingType | None = None
    branding: BrandingType | None = None
    international: bool | None = None
    email: str | None = None
    phone: str | None = None
    deadline_text: str | None = None
    distribution_timing: DistributionTiming | None = None
    address_handling: AddressHandling | None = None
    branding_needs_qualification: bool | None = None

    def replace(self, **changes: Any) -> "ChatState":
        """Return a new snapshot with ``changes`` applied."""
        return replace(self, **changes)

    def has_contact(self) -> bool:
        """True when a non-empty email or phone has been captured."""
        return bool(self.email) or bool(self.phone)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire format, omitting absent fields."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[WIRE_KEYS[f.name]] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatState":
        """Build a snapshot from the wire format.

        Unknown keys are ignored; null values are treated as absent.

        Raises:
            ValueError: If a known key holds a value of the wrong type or
                outside its enum.
        """
        if not isinstance(data, dict):
            raise ValueError("state must be an object")

        by_wire = {wire: attr for attr, wire in WIRE_KEYS.items()}
        values: dict[str, Any] = {}
        for wire, raw in data.items():
            attr = by_wire.get(wire)
            if attr is None or raw is None:
                continue
            values[attr] = _coerce(attr, raw)
        return cls(**values)


def _finite(wire: str, raw: Any) -> float:
    """Convert a JSON number to a finite float; ints beyond float range are rejected."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{wire} must be a number")
    try:
        value = float(raw)
    except OverflowError as e:
        raise ValueError(f"{wire} is out of range") from e
    if not math.isfinite(value):
        raise ValueError(f"{wire} must be finite")
    return value


def _coerce(attr: str, raw: Any) -> Any:
    """Validate one wire value for attribute ``attr``."""
    if attr == "quantity":
        value = _finite("quantity", raw)
        if value <= 0 or raw != int(raw):
            raise ValueError("quantity must be a positive integer")
        return int(raw)

    if attr == "budget_per_unit_usd":
        value = _finite("budgetPerUnitUsd", raw)
        if value <= 0:
            raise ValueError("budgetPerUnitUsd must be positive")
        return value

    if attr in _BOOL_FIELDS:
        if not isinstance(raw, bool):
            raise ValueError(f"{WIRE_KEYS[attr]} must be a boolean")
        return raw

    if attr in _STR_FIELDS:
        if not isinstance(raw, str):
            raise ValueError(f"{WIRE_KEYS[attr]} must be a string")
        return raw

    allowed = _ENUM_VALUES[attr]
    if raw not in allowed:
        raise ValueError(f"{WIRE_KEYS[attr]} must be one of {sorted(allowed)}")
    return raw


@dataclass(frozen=True)
class ComplexityResult:
    """Outcome of scoring a ChatState.

    ``reasons`` holds one string per rule that fired, in rule-evaluation
    order (not ordered by score contribution).
    """

    score: int
    mode: ComplexityMode
    reasons: list[str] = field(default_factory=list)
