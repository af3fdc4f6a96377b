from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .errors import ValidationError
from .money import to_bps, to_cents
from .models.invoices import INVOICE_STATUSES, INVOICE_STATUS_DRAFT, INVOICE_STATUS_ISSUED, ITEM_TYPES
from .time_utils import parse_iso_datetime


# Field kinds understood by _coerce_value
MONEY = "money"          # wire 97.65 -> 9765 cents
PERCENT = "percent"      # wire 8.5 -> 850 bps
INTEGER = "integer"
POSITIVE_INTEGER = "positive_integer"
BOOLEAN = "boolean"
DATETIME = "datetime"
STRING = "string"
CHOICE = "choice"


@dataclass(frozen=True)
class FieldSpec:
    """
    One writable wire field.

    wire: camelCase key in the JSON body
    attr: snake_case key in the cleaned patch (storage name)
    """
    wire: str
    attr: str
    kind: str
    nullable: bool = True
    max_length: int | None = None
    choices: tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidationPolicy:
    """
    Central policy layer:
    - fields: what clients are allowed to set (security boundary)
    - required_on_create: wire names required when partial=False
    """
    fields: tuple[FieldSpec, ...]
    required_on_create: frozenset[str] = field(default_factory=frozenset)

    def by_wire(self) -> dict[str, FieldSpec]:
        return {spec.wire: spec for spec in self.fields}


def _field_error(name: str, message: str) -> dict:
    return {"field": name, "message": message}


def _coerce_value(spec: FieldSpec, value: Any):
    name = spec.wire

    if spec.kind == MONEY:
        return to_cents(value, name)

    if spec.kind == PERCENT:
        return to_bps(value, name)

    if spec.kind in (INTEGER, POSITIVE_INTEGER):
        # Reject bool, floats, decimals and scientific notation
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer", [_field_error(name, "must be an integer")])
        if isinstance(value, int):
            number = value
        elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
            number = int(value.strip())
        else:
            raise ValidationError(f"{name} must be an integer", [_field_error(name, "must be an integer")])
        if spec.kind == POSITIVE_INTEGER and number <= 0:
            raise ValidationError(f"{name} must be greater than 0", [_field_error(name, "must be greater than 0")])
        return number

    if spec.kind == BOOLEAN:
        if not isinstance(value, bool):
            raise ValidationError(f"{name} must be a boolean", [_field_error(name, "must be a boolean")])
        return value

    if spec.kind == DATETIME:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                dt = None
            if dt is not None:
                return dt
        raise ValidationError(f"{name} must be an ISO-8601 datetime", [_field_error(name, "must be an ISO-8601 datetime")])

    if spec.kind == CHOICE:
        text = str(value).strip().lower()
        if text not in spec.choices:
            allowed = ", ".join(spec.choices)
            raise ValidationError(f"{name} must be one of: {allowed}", [_field_error(name, f"must be one of: {allowed}")])
        return text

    # Strings / Text
    text = str(value).strip()
    if not spec.nullable and text == "":
        raise ValidationError(f"{name} cannot be blank", [_field_error(name, "cannot be blank")])
    if spec.max_length and len(text) > spec.max_length:
        raise ValidationError(
            f"{name} exceeds max length {spec.max_length}",
            [_field_error(name, f"exceeds max length {spec.max_length}")],
        )
    return text


def validate_payload(*, payload: Any, policy: ValidationPolicy, partial: bool) -> dict:
    """
    Validates + normalizes an incoming JSON object against a policy.

    Returns a cleaned patch keyed by storage attribute names, holding only the
    fields that were supplied. Every problem found is reported at once in the
    ValidationError's errors list.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    specs = policy.by_wire()
    errors: list[dict] = []

    if not partial:
        for name in sorted(policy.required_on_create):
            if payload.get(name) is None:
                errors.append(_field_error(name, "is required"))

    for name in payload.keys():
        if name not in specs:
            errors.append(_field_error(name, "is not allowed"))

    patch: dict = {}
    for name, raw in payload.items():
        spec = specs.get(name)
        if spec is None:
            continue

        if raw is None:
            if not spec.nullable:
                if partial or name not in policy.required_on_create:
                    errors.append(_field_error(name, "cannot be null"))
                continue
            patch[spec.attr] = None
            continue

        try:
            patch[spec.attr] = _coerce_value(spec, raw)
        except ValidationError as exc:
            errors.extend(exc.errors or [_field_error(name, exc.message)])

    if errors:
        raise ValidationError("Validation failed", errors)

    return patch


# =============================================================================
# RESOURCE POLICIES
# =============================================================================

_INVOICE_COMMON = (
    FieldSpec("customerId", "customer_id", INTEGER),
    FieldSpec("ticketId", "ticket_id", INTEGER),
    FieldSpec("issueDate", "issue_date", DATETIME),
    FieldSpec("dueDate", "due_date", DATETIME),
    FieldSpec("subtotal", "subtotal_cents", MONEY, nullable=False),
    FieldSpec("taxRate", "tax_rate_bps", PERCENT, nullable=False),
    FieldSpec("taxAmount", "tax_amount_cents", MONEY, nullable=False),
    FieldSpec("discountAmount", "discount_amount_cents", MONEY, nullable=False),
    FieldSpec("totalAmount", "total_amount_cents", MONEY, nullable=False),
    FieldSpec("notes", "notes", STRING),
)

INVOICE_CREATE_POLICY = ValidationPolicy(
    fields=_INVOICE_COMMON + (
        FieldSpec("locationId", "location_id", INTEGER),
        FieldSpec(
            "status", "status", CHOICE, nullable=False,
            choices=(INVOICE_STATUS_DRAFT, INVOICE_STATUS_ISSUED),
        ),
    ),
)

INVOICE_UPDATE_POLICY = ValidationPolicy(
    fields=_INVOICE_COMMON + (
        FieldSpec("status", "status", CHOICE, nullable=False, choices=INVOICE_STATUSES),
    ),
)

INVOICE_ITEM_POLICY = ValidationPolicy(
    fields=(
        FieldSpec("description", "description", STRING, nullable=False, max_length=500),
        FieldSpec("quantity", "quantity", POSITIVE_INTEGER, nullable=False),
        FieldSpec("unitPrice", "unit_price_cents", MONEY, nullable=False),
        FieldSpec("discountPercent", "discount_percent_bps", PERCENT, nullable=False),
        FieldSpec("type", "item_type", CHOICE, nullable=False, choices=ITEM_TYPES),
        FieldSpec("inventoryItemId", "inventory_item_id", INTEGER),
    ),
    required_on_create=frozenset({"description", "quantity", "unitPrice"}),
)

MARK_PAID_POLICY = ValidationPolicy(
    fields=(
        FieldSpec("paymentMethod", "payment_method", STRING, nullable=False, max_length=50),
        FieldSpec("paymentReference", "payment_reference", STRING, max_length=100),
        FieldSpec("paymentNotes", "payment_notes", STRING),
        FieldSpec("paidDate", "paid_date", DATETIME),
    ),
    required_on_create=frozenset({"paymentMethod"}),
)

CASH_PAYMENT_POLICY = ValidationPolicy(
    fields=(
        FieldSpec("amount", "amount_cents", MONEY, nullable=False),
        FieldSpec("sessionId", "session_id", INTEGER),
        FieldSpec("locationId", "location_id", INTEGER),
    ),
    required_on_create=frozenset({"amount"}),
)

CARD_PAYMENT_POLICY = ValidationPolicy(
    fields=(
        FieldSpec("reference", "reference", STRING, nullable=False, max_length=100),
        FieldSpec("amount", "amount_cents", MONEY, nullable=False),
        FieldSpec("succeeded", "succeeded", BOOLEAN, nullable=False),
    ),
    required_on_create=frozenset({"reference", "amount", "succeeded"}),
)

REFUND_POLICY = ValidationPolicy(
    fields=(
        FieldSpec("amount", "amount_cents", MONEY, nullable=False),
        FieldSpec("method", "method", STRING, nullable=False, max_length=50),
        FieldSpec("reason", "reason", STRING),
        FieldSpec("sessionId", "session_id", INTEGER),
        FieldSpec("locationId", "location_id", INTEGER),
    ),
    required_on_create=frozenset({"amount", "method"}),
)

DRAWER_OPEN_POLICY = ValidationPolicy(
    fields=(
        FieldSpec("openingAmount", "opening_amount_cents", MONEY, nullable=False),
        FieldSpec("locationId", "location_id", INTEGER),
        FieldSpec("notes", "notes", STRING),
    ),
    required_on_create=frozenset({"openingAmount"}),
)

DRAWER_CLOSE_POLICY = ValidationPolicy(
    fields=(
        FieldSpec("closingAmount", "closing_amount_cents", MONEY, nullable=False),
        FieldSpec("countedChecks", "counted_checks_cents", MONEY),
        FieldSpec("countedCards", "counted_cards_cents", MONEY),
        FieldSpec("notes", "notes", STRING),
        FieldSpec("locationId", "location_id", INTEGER),
    ),
    required_on_create=frozenset({"closingAmount"}),
)
