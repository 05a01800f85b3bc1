"""Shared pytest fixtures for the credential_render test suite.

Fixtures:
    clear_recorded_surfaces: Empties RecordingSurface.instances after each test
    font_bytes: Real TrueType bytes (Pillow's bundled default font)
    stub_client: Font client that serves font_bytes without the network
    resolver: FontResolver backed by stub_client
    compositor: Compositor backed by resolver
    blank_template: 600x400 white PNG as a data URI

Markers:
    slow: Mark test as slow-running (skip with -m "not slow")
    integration: Mark test as integration test
"""

import sys
from pathlib import Path

import pytest

# Repo root for the package, tests dir for the support module
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from support import RecordingSurface, StubFontClient, load_test_font_bytes, png_data_uri  # noqa: E402


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow-running (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


@pytest.fixture(autouse=True)
def clear_recorded_surfaces():
    """Drop surfaces kept by RecordingSurface after each test."""
    yield
    RecordingSurface.instances.clear()


@pytest.fixture
def font_bytes():
    """Return bytes of a loadable TrueType font.

    Raises:
        pytest.skip: If this Pillow build has no FreeType support.
    """
    return load_test_font_bytes()


@pytest.fixture
def stub_client(font_bytes):
    """Font client that returns font_bytes for every family."""
    return StubFontClient(font_bytes)


@pytest.fixture
def resolver(stub_client):
    from credential_render.font_resolver import FontResolver

    resolver = FontResolver(stub_client)
    yield resolver
    resolver.reset()


@pytest.fixture
def compositor(resolver):
    from credential_render.compositor import Compositor

    return Compositor(resolver)


@pytest.fixture
def blank_template():
    """600x400 white PNG template as a data URI."""
    return png_data_uri(600, 400)
