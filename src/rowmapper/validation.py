"""Per-property value validation.

``Entity.validate_and_set_data`` checks each candidate value against the
constraints its column declares and applies only the values that pass.
The checks are done by a :class:`Validator`; messages come from a
:class:`Translator` so applications can localize them.

Constraint semantics:

==============  ==========================================================
``required``    fails on ``None`` and ``""``
``max_length``  fails when ``len(str(value))`` exceeds the limit
``non_empty``   fails on empty-but-present values: ``0``, ``0.0``, ``"0"``,
                ``""``, ``False``, empty containers
==============  ==========================================================

Examples:
    >>> DefaultValidator().validate("toolong", Constraints(max_length=5))
    ['Please use no more than 5 characters.']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class Constraints:
    """Validation rules of one column."""

    required: bool = False
    max_length: int | None = None
    non_empty: bool = False


@runtime_checkable
class Translator(Protocol):
    """Turns a message key plus parameters into human-readable text."""

    def trans(self, key: str, **params: Any) -> str:
        ...


@runtime_checkable
class Validator(Protocol):
    """Checks one value against one column's constraints."""

    def validate(
        self,
        value: Any,
        constraints: Constraints,
        translator: Translator | None = None,
    ) -> list[str]:
        """Return error messages; an empty list means the value is valid."""
        ...


class DefaultTranslator:
    """English messages, overridable per key."""

    MESSAGES = {
        "required": "This field is required.",
        "max_length": "Please use no more than {max_length} characters.",
        "non_empty": "This field must not be empty.",
        "invalid_type": "Please enter a valid {type} value.",
    }

    def __init__(self, messages: dict[str, str] | None = None):
        self._messages = {**self.MESSAGES, **(messages or {})}

    def trans(self, key: str, **params: Any) -> str:
        try:
            template = self._messages[key]
        except KeyError:
            return key
        return template.format(**params)


def _is_empty(value: Any) -> bool:
    if isinstance(value, str):
        return value in ("", "0")
    if value is None or isinstance(value, (bool, int, float)):
        return not value
    try:
        return len(value) == 0
    except TypeError:
        return False


class DefaultValidator:
    """Validator implementing ``required``, ``max_length`` and ``non_empty``."""

    def validate(
        self,
        value: Any,
        constraints: Constraints,
        translator: Translator | None = None,
    ) -> list[str]:
        translator = translator or DefaultTranslator()
        errors: list[str] = []

        if value is None or value == "":
            if constraints.required:
                errors.append(translator.trans("required"))
            elif constraints.non_empty and value == "":
                errors.append(translator.trans("non_empty"))
            return errors

        if constraints.max_length is not None and len(str(value)) > constraints.max_length:
            errors.append(translator.trans("max_length", max_length=constraints.max_length))

        if constraints.non_empty and _is_empty(value):
            errors.append(translator.trans("non_empty"))

        return errors


__all__ = [
    "Constraints",
    "Translator",
    "Validator",
    "DefaultTranslator",
    "DefaultValidator",
]
