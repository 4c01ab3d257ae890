"""Shared fixtures for tacstream tests."""

from collections import defaultdict

import pytest

from tacstream.acmi import Coords, Property
from tacstream.sync import Lifecycle, TrackedObject


class FakeTransport:
    """Collects everything sent to each connection."""

    def __init__(self):
        self.sent: dict = defaultdict(list)

    def send(self, conn_id, data: bytes) -> None:
        self.sent[conn_id].append(data)

    def received(self, conn_id) -> bytes:
        return b"".join(self.sent[conn_id])


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_object(
    object_id: int,
    altitude: float = 1000.0,
    name: str = "F-16C",
    lifecycle: Lifecycle = Lifecycle.ALIVE,
    **props: str,
) -> TrackedObject:
    """Build a tracked object with a Name plus any extra properties."""
    properties = [Property("Name", name)]
    properties.extend(Property(k, v) for k, v in props.items())
    return TrackedObject(
        id=object_id,
        coords=Coords(longitude=10, latitude=20, altitude=altitude),
        properties=tuple(properties),
        lifecycle=lifecycle,
    )


@pytest.fixture(name="make_object")
def make_object_fixture():
    return make_object


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()
