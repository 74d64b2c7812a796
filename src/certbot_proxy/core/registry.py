"""Bounded, thread-safe in-memory store of pending http-01 challenges.

Keyed by domain.  The registry is volatile: tokens only
live for one ACME validation round and callers delete them once the
authority has probed.  Every operation takes the same lock, so
concurrent set/get/delete calls on a domain resolve to a single order.

Usage::

    registry = TokenRegistry(max_tokens=10000)
    outcome = registry.set(ChallengeRecord("example.com", "tok", "tok.thumb"))
    record = registry.match("example.com", "tok")
    registry.delete("example.com")
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from certbot_proxy.core.types import CapacityPolicy, SetOutcome

if TYPE_CHECKING:
    from certbot_proxy.config.settings import RegistrySettings
    from certbot_proxy.models.challenge import ChallengeRecord

log = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 10000


class TokenRegistry:
    """Mapping of domain to :class:`ChallengeRecord` with a size bound.

    With :attr:`CapacityPolicy.ADVISORY` a full registry still accepts
    the write and reports :attr:`SetOutcome.STORED_OVER_CAPACITY`.
    With :attr:`CapacityPolicy.STRICT` inserts of new domains are
    refused once full; replacing an existing domain is always allowed.
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        policy: CapacityPolicy = CapacityPolicy.ADVISORY,
    ) -> None:
        if max_tokens < 1:
            msg = f"max_tokens must be >= 1 (got {max_tokens})"
            raise ValueError(msg)
        self._max_tokens = max_tokens
        self._policy = CapacityPolicy(policy)
        self._records: dict[str, ChallengeRecord] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: RegistrySettings) -> TokenRegistry:
        return cls(
            max_tokens=settings.max_tokens,
            policy=CapacityPolicy(settings.capacity_policy),
        )

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    @property
    def policy(self) -> CapacityPolicy:
        return self._policy

    def set(self, record: ChallengeRecord) -> SetOutcome:
        """Insert or replace the entry for ``record.domain``."""
        if not record.is_complete():
            msg = "cannot store a challenge record with empty fields"
            raise ValueError(msg)

        with self._lock:
            full = len(self._records) >= self._max_tokens
            if not full:
                self._records[record.domain] = record
                return SetOutcome.STORED

            if self._policy is CapacityPolicy.STRICT:
                if record.domain in self._records:
                    self._records[record.domain] = record
                    return SetOutcome.STORED
                return SetOutcome.REJECTED

            self._records[record.domain] = record
            return SetOutcome.STORED_OVER_CAPACITY

    def get(self, domain: str) -> ChallengeRecord | None:
        with self._lock:
            return self._records.get(domain)

    def match(self, domain: str, token: str) -> ChallengeRecord | None:
        """Return the record for *domain* only if its token equals *token*."""
        with self._lock:
            record = self._records.get(domain)
        if record is None or record.token != token:
            return None
        return record

    def delete(self, domain: str) -> None:
        """Remove *domain*; absent domains are a no-op."""
        with self._lock:
            self._records.pop(domain, None)

    def __repr__(self) -> str:
        return f"<TokenRegistry max_tokens={self._max_tokens} policy={self._policy.value}>"
