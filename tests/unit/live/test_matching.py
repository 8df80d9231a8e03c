"""Tests for quick-join search criteria."""

from ttrplobby.live.matching import (
    OPEN_TOLERANCE_MINUTES,
    PHASE_HINTS,
    MatchCriteria,
    SearchPhase,
)


class TestLengthWindow:
    def test_exact(self) -> None:
        criteria = MatchCriteria(system="D&D 5e (2014)", length_minutes=120)
        assert criteria.length_window() == (120, 120)

    def test_widened(self) -> None:
        criteria = MatchCriteria(system="D&D 5e (2014)", length_minutes=120).widened(60)
        assert criteria.length_window() == (60, 180)

    def test_lower_bound_never_below_fifteen_minutes(self) -> None:
        criteria = MatchCriteria(system="D&D 5e (2014)", length_minutes=60, tolerance_minutes=120)
        assert criteria.length_window() == (15, 180)


class TestRelaxed:
    def test_relaxed_ignores_flags_at_widest_tolerance(self) -> None:
        criteria = MatchCriteria(
            system="D&D 5e (2014)", length_minutes=90, new_player_friendly=False, adult=True
        )
        relaxed = criteria.relaxed()
        assert relaxed.ignore_flags is True
        assert relaxed.tolerance_minutes == OPEN_TOLERANCE_MINUTES
        # Original is untouched
        assert criteria.ignore_flags is False
        assert criteria.tolerance_minutes == 0


class TestToPayload:
    def test_strict_payload_carries_flags(self) -> None:
        payload = MatchCriteria(
            system="D&D 5e (2014)", length_minutes=60, new_player_friendly=False, adult=True
        ).to_payload()
        assert payload == {
            "system": "D&D 5e (2014)",
            "lengthMinutes": 60,
            "toleranceMinutes": 0,
            "newPlayerFriendly": False,
            "adult": True,
        }

    def test_relaxed_payload_omits_flags(self) -> None:
        payload = MatchCriteria(system="D&D 5e (2014)", length_minutes=60).relaxed().to_payload()
        assert payload["ignoreFlags"] is True
        assert "newPlayerFriendly" not in payload
        assert "adult" not in payload


def test_every_phase_has_a_hint() -> None:
    assert set(PHASE_HINTS) == set(SearchPhase)
