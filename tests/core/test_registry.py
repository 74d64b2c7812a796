"""Unit tests for certbot_proxy.core.registry: the token registry."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from certbot_proxy.core.registry import DEFAULT_MAX_TOKENS, TokenRegistry
from certbot_proxy.core.types import CapacityPolicy, SetOutcome
from certbot_proxy.models.challenge import ChallengeRecord


def _record(i: int = 0, token: str | None = None) -> ChallengeRecord:
    return ChallengeRecord(
        domain=f"host{i}.example.com",
        token=token or f"token-{i}",
        validation=f"token-{i}.thumbprint",
    )


# ---------------------------------------------------------------------------
# Point operations
# ---------------------------------------------------------------------------


class TestPointOperations:
    def test_set_then_get(self):
        registry = TokenRegistry()
        rec = _record()
        assert registry.set(rec) is SetOutcome.STORED
        assert registry.get(rec.domain) == rec

    def test_get_unknown_domain(self):
        assert TokenRegistry().get("nobody.example.com") is None

    def test_set_overwrites_same_domain(self):
        registry = TokenRegistry()
        registry.set(_record(1, token="old"))
        registry.set(_record(1, token="new"))
        assert registry.get("host1.example.com").token == "new"

    def test_match_requires_exact_token(self):
        registry = TokenRegistry()
        rec = _record(token="abc")
        registry.set(rec)
        assert registry.match(rec.domain, "abc") == rec
        assert registry.match(rec.domain, "abcd") is None
        assert registry.match(rec.domain, "ab") is None
        assert registry.match(rec.domain, "") is None

    def test_match_unknown_domain(self):
        assert TokenRegistry().match("nobody.example.com", "abc") is None

    def test_match_stale_token_after_overwrite(self):
        registry = TokenRegistry()
        registry.set(_record(1, token="first"))
        registry.set(_record(1, token="second"))
        assert registry.match("host1.example.com", "first") is None
        assert registry.match("host1.example.com", "second") is not None

    def test_delete(self):
        registry = TokenRegistry()
        rec = _record()
        registry.set(rec)
        registry.delete(rec.domain)
        assert registry.get(rec.domain) is None

    def test_delete_absent_is_noop(self):
        registry = TokenRegistry()
        registry.delete("never.example.com")
        assert registry.get("never.example.com") is None

    def test_incomplete_record_rejected(self):
        registry = TokenRegistry()
        with pytest.raises(ValueError, match="empty fields"):
            registry.set(ChallengeRecord("example.com", "", "v"))
        assert registry.get("example.com") is None


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


class TestCapacity:
    def test_default_max_tokens(self):
        registry = TokenRegistry()
        assert registry.max_tokens == DEFAULT_MAX_TOKENS == 10000
        assert registry.policy is CapacityPolicy.ADVISORY

    def test_invalid_max_tokens(self):
        with pytest.raises(ValueError, match="max_tokens"):
            TokenRegistry(max_tokens=0)

    def test_advisory_flags_but_stores_over_capacity(self):
        registry = TokenRegistry(max_tokens=3)
        outcomes = [registry.set(_record(i)) for i in range(4)]
        assert outcomes[:3] == [SetOutcome.STORED] * 3
        assert outcomes[3] is SetOutcome.STORED_OVER_CAPACITY
        assert registry.get("host3.example.com") is not None

    def test_advisory_flags_overwrite_when_full(self):
        registry = TokenRegistry(max_tokens=2)
        registry.set(_record(0))
        registry.set(_record(1))
        assert registry.set(_record(0, token="again")) is SetOutcome.STORED_OVER_CAPACITY
        assert registry.get("host0.example.com").token == "again"

    def test_strict_rejects_new_domain_when_full(self):
        registry = TokenRegistry(max_tokens=2, policy=CapacityPolicy.STRICT)
        registry.set(_record(0))
        registry.set(_record(1))
        assert registry.set(_record(2)) is SetOutcome.REJECTED
        assert registry.get("host2.example.com") is None

    def test_strict_allows_replacing_existing_when_full(self):
        registry = TokenRegistry(max_tokens=2, policy="strict")
        registry.set(_record(0))
        registry.set(_record(1))
        assert registry.set(_record(1, token="fresh")) is SetOutcome.STORED
        assert registry.get("host1.example.com").token == "fresh"

    def test_delete_frees_capacity(self):
        registry = TokenRegistry(max_tokens=1, policy=CapacityPolicy.STRICT)
        registry.set(_record(0))
        registry.delete("host0.example.com")
        assert registry.set(_record(1)) is SetOutcome.STORED

    def test_fill_to_default_limit(self):
        registry = TokenRegistry()
        for i in range(DEFAULT_MAX_TOKENS):
            assert registry.set(_record(i)) is SetOutcome.STORED
        assert registry.set(_record(DEFAULT_MAX_TOKENS)) is SetOutcome.STORED_OVER_CAPACITY

    def test_from_settings(self):
        from certbot_proxy.config.settings import RegistrySettings

        registry = TokenRegistry.from_settings(
            RegistrySettings(max_tokens=7, capacity_policy="strict"),
        )
        assert registry.max_tokens == 7
        assert registry.policy is CapacityPolicy.STRICT


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrency:
    def test_concurrent_mutation_of_one_domain(self):
        registry = TokenRegistry()
        domain = "race.example.com"
        errors: list[BaseException] = []
        start = threading.Barrier(8)

        def worker(n: int) -> None:
            try:
                start.wait()
                for i in range(500):
                    token = f"t{n}-{i}"
                    registry.set(ChallengeRecord(domain, token, f"{token}.v"))
                    rec = registry.get(domain)
                    if rec is not None:
                        # A record is always internally consistent
                        assert rec.validation == f"{rec.token}.v"
                    registry.match(domain, token)
                    if i % 3 == 0:
                        registry.delete(domain)
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        final = registry.get(domain)
        assert final is None or final.validation == f"{final.token}.v"

    def test_concurrent_inserts_are_not_lost(self):
        registry = TokenRegistry(max_tokens=5000)

        def insert(i: int) -> SetOutcome:
            return registry.set(_record(i))

        with ThreadPoolExecutor(max_workers=16) as pool:
            outcomes = list(pool.map(insert, range(2000)))

        assert all(o is SetOutcome.STORED for o in outcomes)
        for i in range(2000):
            assert registry.match(f"host{i}.example.com", f"token-{i}") is not None

    def test_strict_bound_holds_under_contention(self):
        registry = TokenRegistry(max_tokens=50, policy=CapacityPolicy.STRICT)

        with ThreadPoolExecutor(max_workers=16) as pool:
            outcomes = list(pool.map(lambda i: registry.set(_record(i)), range(500)))

        assert outcomes.count(SetOutcome.STORED) == 50
        assert outcomes.count(SetOutcome.REJECTED) == 450
