"""Shared fixtures for the production engine test suite.

Tests are grouped by layer: ``domain/`` exercises aggregates directly,
``application/`` goes through command handlers, and ``integration/`` and
``bdd/`` drive the engine facade or the HTTP API end to end.
"""

import os
from pathlib import PurePath

import pytest
from protean.integrations.pytest import DomainFixture

# Directory name -> markers applied to every test collected beneath it
_LAYER_MARKERS = {
    "domain": ("domain",),
    "application": ("application",),
    "integration": ("integration", "slow"),
    "bdd": ("integration", "slow"),
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="PROTEAN_ENV overlay to load from domain.toml",
    )


def pytest_sessionstart(session):
    # Must run before production.domain is imported
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = PurePath(str(item.fspath)).parts
        layer = next((part for part in reversed(parts) if part in _LAYER_MARKERS), None)
        if layer is None:
            continue
        for marker in _LAYER_MARKERS[layer]:
            if marker == "slow" and item.get_closest_marker("fast"):
                continue
            item.add_marker(getattr(pytest.mark, marker))


@pytest.fixture(scope="session")
def production_bed():
    from production.domain import production

    bed = DomainFixture(production)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(production_bed):
    with production_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Wipe repositories, the event store and collaborator fakes after every test."""
    yield

    from protean import current_domain

    from production.collaborators.notifier import reset_notifier
    from production.collaborators.storage import reset_file_storage

    for _, provider in current_domain.providers.items():
        provider._data_reset()
    current_domain.event_store.store._data_reset()

    reset_notifier()
    reset_file_storage()


@pytest.fixture()
def notifier():
    from production.collaborators.notifier import get_notifier

    return get_notifier()


@pytest.fixture()
def file_storage():
    from production.collaborators.storage import get_file_storage

    return get_file_storage()
