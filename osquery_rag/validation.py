"""Strict parsing of model output into an :class:`SQLBundle`.

Model output is expected to be a bare JSON object with exactly the four
platform keys.  Nothing is repaired: code fences, prose around the object
or trailing commas all make the output invalid.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from osquery_rag.errors import MalformedOutputError
from osquery_rag.models import SQLBundle


class Violation(str, Enum):
    INVALID_JSON = "invalid_json"
    NOT_AN_OBJECT = "not_an_object"
    MISSING_FIELD = "missing_field"
    UNEXPECTED_FIELD = "unexpected_field"
    NON_STRING_FIELD = "non_string_field"


_PYDANTIC_VIOLATIONS = {
    "missing": Violation.MISSING_FIELD,
    "extra_forbidden": Violation.UNEXPECTED_FIELD,
    "string_type": Violation.NON_STRING_FIELD,
}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of :func:`parse_sql_bundle`: a bundle or a violation."""

    bundle: Optional[SQLBundle] = None
    violation: Optional[Violation] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.bundle is not None


def parse_sql_bundle(raw_text: str) -> ValidationResult:
    try:
        data = json.loads(raw_text)
    except (TypeError, ValueError) as exc:
        return ValidationResult(violation=Violation.INVALID_JSON, detail=str(exc))

    if not isinstance(data, dict):
        return ValidationResult(
            violation=Violation.NOT_AN_OBJECT,
            detail=f"expected a JSON object, got {type(data).__name__}",
        )

    try:
        bundle = SQLBundle.model_validate(data)
    except ValidationError as exc:
        # Report the first failing constraint; the rest are in the detail
        first = exc.errors()[0]
        violation = _PYDANTIC_VIOLATIONS.get(first["type"], Violation.NON_STRING_FIELD)
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        return ValidationResult(violation=violation, detail=f"{violation.value}: {fields}")

    return ValidationResult(bundle=bundle)


def validate_sql_bundle(raw_text: str) -> SQLBundle:
    """Return the bundle encoded by ``raw_text``.

    Raises:
        MalformedOutputError: carrying the violation and the raw text.
    """
    result = parse_sql_bundle(raw_text)
    if not result.ok:
        raise MalformedOutputError(
            f"Model output is not a valid SQL bundle ({result.detail})",
            violation=result.violation,
            raw_output=raw_text,
        )
    return result.bundle
