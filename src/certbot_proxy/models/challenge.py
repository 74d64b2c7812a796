"""Pending ACME http-01 challenge record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

_FIELDS = ("domain", "token", "validation")


@dataclass(frozen=True)
class ChallengeRecord:
    domain: str
    token: str
    validation: str

    @classmethod
    def from_json(cls, data: Any) -> ChallengeRecord:  # noqa: ANN401
        """Build a record from a decoded JSON body.

        Missing (or ``null``) fields become ``""`` and unknown keys are
        ignored.  Raises :class:`ValueError` when *data* is not a JSON
        object or a known field is not a string.
        """
        if not isinstance(data, dict):
            msg = f"expected a JSON object, got {type(data).__name__}"
            raise ValueError(msg)
        values: dict[str, str] = {}
        for name in _FIELDS:
            value = data.get(name)
            if value is None:
                value = ""
            if not isinstance(value, str):
                msg = f"field '{name}' must be a string"
                raise ValueError(msg)
            values[name] = value
        return cls(**values)

    def is_complete(self) -> bool:
        """True when domain, token and validation are all non-empty."""
        return bool(self.domain and self.token and self.validation)
