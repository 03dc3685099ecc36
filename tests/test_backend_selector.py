"""Tests for round-robin chunk placement."""

import pytest

from blobstore.memory_backend import InMemoryBackend
from common.exceptions import ValidationError
from vault.backend_selector import RoundRobinSelector


class TestRoundRobinSelector:

    def test_index_mod_n(self, backends):
        selector = RoundRobinSelector(backends)
        assert [selector.select(i).name for i in range(7)] == ["A", "B", "C", "A", "B", "C", "A"]

    def test_deterministic(self, backends):
        first = RoundRobinSelector(backends)
        second = RoundRobinSelector(list(backends))
        assert all(first.select(i) is second.select(i) for i in range(20))

    @pytest.mark.parametrize("chunk_count", [0, 1, 2, 3, 10, 100])
    def test_fair_placement(self, backends, chunk_count):
        placement = RoundRobinSelector(backends).placement(chunk_count)
        n = len(backends)
        assert sum(placement.values()) == chunk_count
        for count in placement.values():
            assert chunk_count // n <= count <= chunk_count // n + 1

    def test_three_chunks_on_three_backends(self, backends):
        assert RoundRobinSelector(backends).placement(3) == {"A": 1, "B": 1, "C": 1}

    def test_lookup_by_name(self, backends):
        selector = RoundRobinSelector(backends)
        assert selector.get("B") is backends[1]
        with pytest.raises(KeyError):
            selector.get("missing")

    def test_empty_backends_rejected(self):
        with pytest.raises(ValidationError):
            RoundRobinSelector([])

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValidationError):
            RoundRobinSelector([InMemoryBackend("A"), InMemoryBackend("A")])

    def test_negative_index_rejected(self, backends):
        with pytest.raises(ValueError):
            RoundRobinSelector(backends).select(-1)
