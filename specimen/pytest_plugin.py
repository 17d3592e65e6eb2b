"""pytest integration.

Registered through the ``pytest11`` entry point:

    @pytest.mark.specimen(seed=42, max_depth=3)
    def test_orders():
        order = specimen.create(Order)  # seeded from 42, depth limited to 3

``seed`` makes every unseeded generation in the test reproducible; other
keyword arguments are injected as settings. ``--specimen-seed`` seeds every
test that does not set its own. When a test fails, the seeds of the
generations it ran are added to the report.
"""

import logging
from contextlib import ExitStack

import pytest

from .api import record_seeds, seeded
from .config import Settings, use_settings

logger = logging.getLogger(__name__)

_SEEDS = pytest.StashKey[list[int]]()


def pytest_addoption(parser):
    group = parser.getgroup("specimen")
    group.addoption(
        "--specimen-seed",
        type=int,
        default=None,
        help="Seed every generation in tests without a specimen(seed=...) marker",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "specimen(seed=None, **settings): seed and settings for generations in this test",
    )


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_call(item):
    marker = item.get_closest_marker("specimen")
    options = dict(marker.kwargs) if marker is not None else {}
    seed = options.pop("seed", None)
    if seed is None:
        seed = item.config.getoption("--specimen-seed")

    with ExitStack() as stack:
        if options:
            stack.enter_context(use_settings(Settings(options)))
        if seed is not None:
            stack.enter_context(seeded(seed))
            logger.debug("Seeding %s with %d", item.nodeid, seed)
        item.stash[_SEEDS] = stack.enter_context(record_seeds())
        yield


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when != "call" or not report.failed:
        return
    seeds = item.stash.get(_SEEDS, [])
    if seeds:
        report.sections.append(
            ("specimen", "Generation seeds: " + ", ".join(str(s) for s in seeds))
        )
