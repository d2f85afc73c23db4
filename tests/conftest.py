import pytest

from fakes import FakeRemote, area_url, listing


@pytest.fixture
def scenario_remote():
    """Region A -> Province A, whose document is an election return."""
    return FakeRemote(
        {
            area_url("0"): listing(("01", "Region A")),
            area_url("01"): listing(("0101", "Province A")),
            area_url("0101"): {"totalReceived": 5},
        }
    )
