"""
auth/validation.py -- Field rules and the field-keyed error collection.

ValidationErrors maps a field name (or NON_FIELD_ERRORS for failures that
belong to no single field) to the ordered list of messages raised against it.
Rules never stop at the first failure: every rule runs and every message is
kept, so the client can show all problems at once.

Wire format (ValidationErrors.to_dict()):
    {"email": ["cannot be empty"], "password": ["length is not between 4 and 120"]}

Layer rule: no imports from api/, core/ or other auth/ modules.
"""

from __future__ import annotations

from collections.abc import Callable

NON_FIELD_ERRORS = "__error__"

MIN_LENGTH = 4
MAX_LENGTH = 120

# A rule returns an error message, or None if the value passes.
Rule = Callable[[str], "str | None"]


class ValidationErrors:
    """Ordered field -> messages collection.

    Fields keep the order in which their first error was added; messages keep
    the order in which they were added.
    """

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def has(self, field: str) -> bool:
        return field in self._errors

    def get(self, field: str) -> list[str]:
        return list(self._errors.get(field, []))

    def to_dict(self) -> dict[str, list[str]]:
        """Return a copy in the wire format, safe to hand to a JSON encoder."""
        return {field: list(messages) for field, messages in self._errors.items()}

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __repr__(self) -> str:
        return f"ValidationErrors({self._errors!r})"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def not_empty(value: str) -> str | None:
    if not value:
        return "cannot be empty"
    return None


def length_between(low: int, high: int) -> Rule:
    """Build a rule that rejects values whose character length is outside [low, high].

    Empty values pass: emptiness is not_empty's job, and reporting both
    messages for one blank field is noise.
    """

    def rule(value: str) -> str | None:
        if value and not low <= len(value) <= high:
            return f"length is not between {low} and {high}"
        return None

    return rule


SIGNUP_RULES: dict[str, list[Rule]] = {
    "email": [not_empty, length_between(MIN_LENGTH, MAX_LENGTH)],
    "password": [not_empty, length_between(MIN_LENGTH, MAX_LENGTH)],
}

# Login only checks presence: the stored credentials are the real test.
LOGIN_RULES: dict[str, list[Rule]] = {
    "email": [not_empty],
    "password": [not_empty],
}


def validate(
    values: dict[str, str],
    rules: dict[str, list[Rule]],
    errors: ValidationErrors | None = None,
) -> ValidationErrors:
    """Run every rule for every field and collect the failures.

    Fields missing from values are validated as empty strings. Pass an
    existing ValidationErrors to accumulate into it.
    """
    if errors is None:
        errors = ValidationErrors()
    for field, field_rules in rules.items():
        value = values.get(field) or ""
        for rule in field_rules:
            message = rule(value)
            if message is not None:
                errors.add(field, message)
    return errors
