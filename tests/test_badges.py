"""
tests/test_badges.py — Reputation Milestones & Tiers
=====================================================
"""

from __future__ import annotations

from agora.engine.badges import milestones_crossed, reputation_tier


class TestMilestones:
    def test_below_first_threshold(self):
        assert milestones_crossed(99) == []

    def test_crossing_several_at_once(self):
        crossed = milestones_crossed(600)
        assert [m.badge_type for m in crossed] == ["REPUTATION_100", "REPUTATION_500"]

    def test_already_held_skipped(self):
        crossed = milestones_crossed(600, {"REPUTATION_100"})
        assert [m.badge_type for m in crossed] == ["REPUTATION_500"]


class TestTiers:
    def test_boundaries(self):
        assert reputation_tier(0).name == "Newcomer"
        assert reputation_tier(100).name == "Rising Star"
        assert reputation_tier(499).name == "Rising Star"
        assert reputation_tier(500).name == "Respected"
        assert reputation_tier(5000).name == "Legend"

    def test_negative_reads_as_newcomer(self):
        assert reputation_tier(-20).name == "Newcomer"
