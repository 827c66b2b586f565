import pytest

from .raw_builders import build_raw


@pytest.fixture
def make_raw():
    return build_raw
