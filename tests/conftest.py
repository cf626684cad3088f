import os

import pytest

from stim_fgen import ColorPrinter, Keysight_33500B, MockFunctionGenerator


RESOURCE_ENV = "STIM_FGEN_RESOURCE"


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "hardware: marks test that require a connected 33500B"
    )


def pytest_collection_modifyitems(config, items):
    if os.environ.get(RESOURCE_ENV):
        return
    skip = pytest.mark.skip(reason=f"set {RESOURCE_ENV} to run hardware tests")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def quiet_console():
    ColorPrinter.quiet = True
    yield
    ColorPrinter.quiet = False


@pytest.fixture
def mock_fgen():
    return MockFunctionGenerator()


@pytest.fixture
def fgen(mock_fgen, tmp_path):
    """Connected session with the connect-time reset already done."""
    session = Keysight_33500B(transport=mock_fgen, log_path=tmp_path / "fgen.log")
    session.connect()
    mock_fgen.clear_history()
    yield session
    session.close()
