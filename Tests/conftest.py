# Tests/conftest.py
#
# Shared fixtures for the tavern_exporter tests.
#
# Imports
#
# Third-party imports
import pytest
#
# Local imports
from tavern_test_utils import FakeClock, SleepRecorder
#
############################################################################################################################
#
# Fixtures:

@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()

#
# End of conftest.py
############################################################################################################################
