import pytest


@pytest.fixture
def fake_clock():
    """手動で進められる時計."""

    class Clock:
        def __init__(self):
            self.now = 1000.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return Clock()
