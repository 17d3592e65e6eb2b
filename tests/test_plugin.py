"""Tests for the pytest plugin, run through pytester."""

import pytest

TYPES = """
from dataclasses import dataclass

import pytest

import specimen


@dataclass
class Inner:
    label: str


@dataclass
class Outer:
    number: int
    inner: Inner
"""


@pytest.fixture
def types_module(pytester):
    pytester.makepyfile(sample_plugin_types=TYPES)
    return pytester


class TestMarker:
    def test_marker_seed_is_reproducible(self, types_module):
        types_module.makepyfile(
            """
            import pytest
            import specimen
            from sample_plugin_types import Outer

            @pytest.mark.specimen(seed=7)
            def test_seeded():
                first = specimen.create(Outer)
                second = specimen.create(Outer)
                with specimen.seeded(7):
                    assert specimen.create(Outer) == first
                    assert specimen.create(Outer) == second
                assert first != second
            """
        )
        result = types_module.runpytest("--strict-markers")
        result.assert_outcomes(passed=1)

    def test_marker_settings(self, types_module):
        types_module.makepyfile(
            """
            import pytest
            import specimen
            from sample_plugin_types import Outer

            @pytest.mark.specimen(max_depth=1)
            def test_shallow():
                assert specimen.create(Outer).inner is None

            def test_default_depth():
                assert specimen.create(Outer).inner is not None
            """
        )
        result = types_module.runpytest()
        result.assert_outcomes(passed=2)

    def test_marker_is_registered(self, pytester):
        result = pytester.runpytest("--markers")
        result.stdout.fnmatch_lines(["*specimen(seed=None, **settings)*"])


class TestSeedOption:
    def test_option_seeds_unmarked_tests(self, types_module):
        types_module.makepyfile(
            """
            import specimen
            from sample_plugin_types import Outer

            def test_from_option():
                first = specimen.create(Outer)
                with specimen.seeded(11):
                    assert specimen.create(Outer) == first
            """
        )
        result = types_module.runpytest("--specimen-seed", "11")
        result.assert_outcomes(passed=1)

    def test_marker_beats_option(self, types_module):
        types_module.makepyfile(
            """
            import pytest
            import specimen
            from sample_plugin_types import Outer

            @pytest.mark.specimen(seed=3)
            def test_marked():
                first = specimen.create(Outer)
                with specimen.seeded(3):
                    assert specimen.create(Outer) == first
            """
        )
        result = types_module.runpytest("--specimen-seed", "11")
        result.assert_outcomes(passed=1)


class TestFailureReport:
    def test_seeds_reported_on_failure(self, types_module):
        types_module.makepyfile(
            """
            import specimen
            from sample_plugin_types import Outer

            def test_fails():
                specimen.of(Outer).with_seed(1234).create()
                assert False
            """
        )
        result = types_module.runpytest()
        result.assert_outcomes(failed=1)
        result.stdout.fnmatch_lines(["*Generation seeds: 1234*"])

    def test_no_section_when_passing(self, types_module):
        types_module.makepyfile(
            """
            import specimen
            from sample_plugin_types import Outer

            def test_passes():
                specimen.create(Outer)
            """
        )
        result = types_module.runpytest("-rA")
        result.assert_outcomes(passed=1)
        assert "Generation seeds" not in result.stdout.str()
