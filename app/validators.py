"""Declarative request-body validation.

A rule is a function taking a field value and returning an error message,
or ``None`` when the value is acceptable. Each entity has a rule table
mapping field names to an ordered chain of rules. ``run_rules`` runs every
rule of every field and returns all failures; nothing short-circuits, so a
client gets the complete list of problems in one response.

Usage:
    @app.post("/properties")
    def create_property(payload: dict = Depends(validate_body(PROPERTY_RULES))):
        ...
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from email_validator import EmailNotValidError, validate_email
from fastapi import Request

from errors import ValidationFailed

logger = logging.getLogger(__name__)

Rule = Callable[[Any], Optional[str]]
RuleTable = Dict[str, Sequence[Rule]]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
INTEGER_STRING = re.compile(r"^[+]?\d+$")

# largest id a 64-bit INTEGER column can hold
MAX_INTEGER = 2**63 - 1


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into a naive UTC ``datetime``.

    Offset-aware inputs are converted to UTC; naive inputs are taken as UTC.
    Raises ``ValueError`` for anything that is not an ISO-8601 string.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"Not an ISO-8601 timestamp: {value!r}")
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError as exc:
            raise ValueError(f"Timestamp out of range: {value!r}") from exc
    return parsed


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


# ---------- Rule factories ----------

def not_empty(message: str) -> Rule:
    def rule(value):
        if value is None:
            return message
        if isinstance(value, str) and not value.strip():
            return message
        return None
    return rule


def is_email(message: str) -> Rule:
    def rule(value):
        if not isinstance(value, str):
            return message
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            return message
        return None
    return rule


def min_length(length: int, message: str) -> Rule:
    def rule(value):
        if not isinstance(value, str) or len(value) < length:
            return message
        return None
    return rule


def matches(pattern, message: str) -> Rule:
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

    def rule(value):
        if not isinstance(value, str) or not compiled.search(value):
            return message
        return None
    return rule


def positive_float(message: str) -> Rule:
    def rule(value):
        number = _as_number(value)
        if number is None or number <= 0:
            return message
        return None
    return rule


def positive_int(message: str) -> Rule:
    def rule(value):
        if isinstance(value, str) and not INTEGER_STRING.match(value.strip()):
            return message
        number = _as_number(value)
        if number is None or not number.is_integer() or number <= 0:
            return message
        if int(value) > MAX_INTEGER:
            return message
        return None
    return rule


def iso8601(message: str) -> Rule:
    def rule(value):
        try:
            parse_timestamp(value)
        except ValueError:
            return message
        return None
    return rule


def optional(*rules: Rule) -> List[Rule]:
    """Wrap a chain so it only runs when the field is present."""
    def guard(inner: Rule) -> Rule:
        def rule(value):
            if value is None:
                return None
            return inner(value)
        return rule
    return [guard(r) for r in rules]


# ---------- Rule tables ----------

PASSWORD_RULES: List[Rule] = [
    min_length(10, "Password must be at least 10 characters long"),
    matches(r"[A-Z]", "Password must contain at least one uppercase letter"),
    matches(r"[a-z]", "Password must contain at least one lowercase letter"),
    matches(SPECIAL_CHARACTERS, "Password must contain at least one special character"),
]

NAME_RULES: RuleTable = {
    "firstName": [not_empty("First name is required")],
    "lastName": [not_empty("Last name is required")],
    "phoneNumber": [not_empty("Phone number is required")],
}

USER_RULES: RuleTable = {
    "email": [
        is_email("Must be a valid email"),
        matches(EMAIL_PATTERN, "Must be a valid email format"),
    ],
    "password": PASSWORD_RULES,
    **NAME_RULES,
}

USER_UPDATE_RULES: RuleTable = {
    "password": optional(*PASSWORD_RULES),
    **NAME_RULES,
}

SIGNIN_RULES: RuleTable = {
    "email": [not_empty("Email is required")],
    "password": [not_empty("Password is required")],
}

PROPERTY_RULES: RuleTable = {
    "name": [not_empty("Name is required")],
    "address": [not_empty("Address is required")],
    "city": [not_empty("City is required")],
    "price": [positive_float("Price must be a positive number")],
    "capacity": [positive_int("Capacity must be a positive integer")],
}

RESERVATION_UPDATE_RULES: RuleTable = {
    "arrivalTime": [iso8601("Must be a valid date")],
    "departureTime": [iso8601("Must be a valid date")],
}

RESERVATION_RULES: RuleTable = {
    "propertyId": [positive_int("propertyId must be a positive integer")],
    **RESERVATION_UPDATE_RULES,
}


def run_rules(rules: RuleTable, payload: Dict[str, Any]) -> List[Dict[str, str]]:
    errors = []
    for field, chain in rules.items():
        value = payload.get(field)
        for rule in chain:
            message = rule(value)
            if message is not None:
                errors.append({"field": field, "msg": message})
    return errors


def validate_body(rules: RuleTable):
    """Build a FastAPI dependency that validates the JSON body against ``rules``.

    Returns the parsed body unchanged when every rule passes, otherwise
    raises ``ValidationFailed`` carrying every failure.
    """
    async def dependency(request: Request) -> Dict[str, Any]:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise ValidationFailed([{"field": "", "msg": "Request body must be a JSON object"}])

        errors = run_rules(rules, payload)
        if errors:
            logger.info(
                "Validation failed for %s %s: %s",
                request.method,
                request.url.path,
                ", ".join(sorted({e["field"] for e in errors})),
            )
            raise ValidationFailed(errors)
        return payload

    return dependency
