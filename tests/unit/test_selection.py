"""Unit tests for NFT selection policy."""

from __future__ import annotations

from collections import Counter

import pytest

from nftdrop.redemption.allocator import Candidate, choose_nft


class TestSelectionPolicy:
    """Sequential bounties take the lowest number; random ones spread out."""

    def test_sequential_picks_lowest_number(self):
        candidates = [Candidate("c", 3), Candidate("a", 1), Candidate("b", 2)]
        assert choose_nft(candidates, is_random=False).number == 1

    def test_sequential_is_deterministic(self):
        candidates = [Candidate("c", 3), Candidate("a", 1), Candidate("b", 2)]
        picks = {choose_nft(candidates, is_random=False).id for _ in range(50)}
        assert picks == {"a"}

    def test_random_is_not_degenerate(self):
        candidates = [Candidate("c", 3), Candidate("a", 1), Candidate("b", 2)]
        counts = Counter(choose_nft(candidates, is_random=True).number for _ in range(600))
        assert set(counts) == {1, 2, 3}
        # Each number should land roughly a third of the time
        assert all(count > 100 for count in counts.values())

    def test_random_single_candidate(self):
        only = Candidate("x", 42)
        assert choose_nft([only], is_random=True) == only

    def test_empty_candidates_rejected(self):
        with pytest.raises(ValueError, match="No candidates"):
            choose_nft([], is_random=False)
