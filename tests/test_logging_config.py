import logging

import pytest

from patchbound.logging_config import qualified_name, set_module_level


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("midi_router", "patchbound.midi_router"),
        ("debug.server", "patchbound.debug.server"),
        ("patchbound.sync", "patchbound.sync"),
        ("patchbound", "patchbound"),
        ("", "patchbound"),
    ],
)
def test_qualified_name(name, expected):
    assert qualified_name(name) == expected


def test_set_module_level_resolves_short_names():
    logger = logging.getLogger("patchbound.transport")
    previous = logger.level
    try:
        set_module_level("transport", logging.DEBUG)
        assert logger.level == logging.DEBUG
    finally:
        logger.setLevel(previous)
