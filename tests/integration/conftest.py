"""
Pytest configuration and fixtures for integration tests.
"""

import logging
import pytest


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Integration tests exercising the cache with its refresh thread"
    )


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """
    Capture cache logs for every integration test.

    Runs automatically so assertions can inspect caplog records.
    """
    caplog.set_level(logging.INFO)

    logging.getLogger('barcache.data.window_maintainer').setLevel(logging.DEBUG)
    logging.getLogger('barcache.data.refresh_task').setLevel(logging.INFO)
    logging.getLogger('barcache.connectors.bar_source').setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """
    Mark every test under the integration directory as 'integration'.
    """
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
