"""Enumerated types for certbot-proxy.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that round-trips through YAML/JSON configuration unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class CapacityPolicy(StrEnum):
    ADVISORY = "advisory"
    STRICT = "strict"


class SetOutcome(StrEnum):
    STORED = "stored"
    STORED_OVER_CAPACITY = "stored_over_capacity"
    REJECTED = "rejected"
