"""test suite for semver-style version constraints."""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from modprofile.resolution.constraints import VersionConstraint


def satisfies(constraint: str, version: str) -> bool:
    return VersionConstraint.parse(constraint).satisfied_by(version)


class TestWildcards:
    @pytest.mark.parametrize("text", ["", "*", "x", "X", "latest", None, "  *  ", "1.0.0 || *"])
    def test_wildcards_parse_to_none(self, text):
        assert VersionConstraint.parse(text) is None


class TestComparators:
    def test_greater_or_equal(self):
        assert satisfies(">=2.0.0", "2.0.0")
        assert satisfies(">=2.0.0", "2.1.0")
        assert not satisfies(">=2.0.0", "1.9.9")

    def test_combined_range(self):
        assert satisfies(">=1.0.0 <2.0.0", "1.5.0")
        assert not satisfies(">=1.0.0 <2.0.0", "2.0.0")

    def test_operator_separated_by_space(self):
        assert satisfies(">= 1.0.0 < 2.0.0", "1.2.0")

    def test_exact_version(self):
        assert satisfies("1.2.3", "1.2.3")
        assert satisfies("=1.2.3", "1.2.3")
        assert not satisfies("1.2.3", "1.2.4")

    def test_leading_v(self):
        assert satisfies(">=v1.0.0", "v1.2.0")

    def test_partial_lower_comparators_are_padded(self):
        assert satisfies(">=1.2", "1.2.0")
        assert not satisfies("<1", "1.0.0")
        assert satisfies("<1.2", "1.1.9")

    def test_partial_less_or_equal_covers_the_range(self):
        assert satisfies("<=1.2", "1.2.5")
        assert not satisfies("<=1.2", "1.3.0")
        assert satisfies("<=1", "1.9.9")
        assert not satisfies("<=1", "2.0.0")

    def test_partial_greater_than_skips_the_range(self):
        assert not satisfies(">1.2", "1.2.5")
        assert satisfies(">1.2", "1.3.0")
        assert not satisfies(">1", "1.9.0")
        assert satisfies(">1", "2.0.0")


class TestRanges:
    def test_caret(self):
        assert satisfies("^1.2.3", "1.9.0")
        assert not satisfies("^1.2.3", "2.0.0")
        assert not satisfies("^1.2.3", "1.2.2")

    def test_caret_zero_major(self):
        assert satisfies("^0.2.3", "0.2.9")
        assert not satisfies("^0.2.3", "0.3.0")

    def test_tilde(self):
        assert satisfies("~1.2.3", "1.2.9")
        assert not satisfies("~1.2.3", "1.3.0")
        assert satisfies("~1", "1.9.0")

    def test_x_ranges(self):
        assert satisfies("1.x", "1.4.2")
        assert not satisfies("1.x", "2.0.0")
        assert satisfies("1.2.*", "1.2.7")
        assert not satisfies("1.2.*", "1.3.0")

    def test_hyphen_range_is_inclusive(self):
        assert satisfies("1.0.0 - 2.0.0", "2.0.0")
        assert satisfies("1.0.0 - 2.0.0", "1.0.0")
        assert not satisfies("1.0.0 - 2.0.0", "2.0.1")

    def test_hyphen_range_partial_upper_bound(self):
        assert satisfies("1.0 - 2.0", "2.0.9")
        assert not satisfies("1.0 - 2.0", "2.1.0")
        assert satisfies("1 - 2", "2.9.0")
        assert not satisfies("1 - 2", "3.0.0")

    def test_alternatives(self):
        constraint = VersionConstraint.parse("<1.0.0 || >=3.0.0")
        assert constraint.satisfied_by("0.5.0")
        assert constraint.satisfied_by("3.1.0")
        assert not constraint.satisfied_by("2.0.0")


class TestInvalid:
    def test_unparseable_constraint(self):
        with pytest.raises(ValueError):
            VersionConstraint.parse("not a version")

    def test_invalid_candidate_version(self):
        with pytest.raises(ValueError):
            VersionConstraint.parse(">=1.0.0").satisfied_by("banana")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
