"""Synthetic world used by the CLI: aircraft orbiting a point, missiles fired at it.

Positions are a pure function of time, so the same world can feed a live
server (wall clock) or an offline recording (simulated clock).
"""

import math
import time
from dataclasses import dataclass
from typing import Callable

from .acmi import Coords, Property
from .sync import Lifecycle, TrackedObject

METERS_PER_DEGREE = 111_320.0
AIRCRAFT_BASE_ID = 0x101
MISSILE_BASE_ID = 0x1001


@dataclass
class Orbit:
    """An aircraft flying a level circle at constant speed."""

    object_id: int
    name: str
    pilot: str
    coalition: str
    color: str
    radius_m: float
    altitude_m: float
    period_s: float
    phase: float = 0.0
    fuel_kg: float = 3000.0
    fuel_burn_kg_s: float = 0.8

    def angle(self, t: float) -> float:
        return 2 * math.pi * t / self.period_s + self.phase

    def coords_at(self, t: float, center_lon: float, center_lat: float) -> Coords:
        theta = self.angle(t)
        east = self.radius_m * math.cos(theta)
        north = self.radius_m * math.sin(theta)
        lat = center_lat + north / METERS_PER_DEGREE
        lon = center_lon + east / (METERS_PER_DEGREE * math.cos(math.radians(center_lat)))
        heading = math.degrees(-theta) % 360.0
        return Coords(
            longitude=round(lon, 7),
            latitude=round(lat, 7),
            altitude=round(self.altitude_m + 50 * math.sin(theta * 2), 1),
            roll=-30.0,
            pitch=0.0,
            yaw=round(heading, 1),
        )

    def properties_at(self, t: float) -> tuple[Property, ...]:
        fuel = max(0.0, self.fuel_kg - self.fuel_burn_kg_s * t)
        return (
            Property("Type", "Air+FixedWing"),
            Property("Name", self.name),
            Property("Pilot", self.pilot),
            Property("Coalition", self.coalition),
            Property("Color", self.color),
            Property("FuelWeight", f"{fuel:.0f}"),
        )


class DemoWorld:
    """A handful of orbiting aircraft and a missile every ``missile_interval`` seconds."""

    def __init__(
        self,
        center_lon: float = 41.6,
        center_lat: float = 42.2,
        aircraft: int = 3,
        missile_interval: float = 30.0,
        missile_flight: float = 20.0,
        wreck_linger: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the demo world.

        Args:
            center_lon: Longitude of the orbit center.
            center_lat: Latitude of the orbit center.
            aircraft: Number of orbiting aircraft.
            missile_interval: Seconds between missile launches.
            missile_flight: Seconds a missile flies before it is destroyed.
            wreck_linger: Seconds a destroyed missile is still reported.
            clock: Clock used by ``snapshot()``.
        """
        if missile_flight + wreck_linger > missile_interval:
            raise ValueError("missile_interval must cover flight and linger time")
        self.center_lon = center_lon
        self.center_lat = center_lat
        self.missile_interval = missile_interval
        self.missile_flight = missile_flight
        self.wreck_linger = wreck_linger
        self._clock = clock
        self._started = clock()
        self.orbits = [
            Orbit(
                object_id=AIRCRAFT_BASE_ID + i,
                name=("F-16C", "F/A-18C", "Su-27")[i % 3],
                pilot=f"Demo {i + 1}",
                coalition="Enemies" if i % 3 == 2 else "Allies",
                color="Red" if i % 3 == 2 else "Blue",
                radius_m=8000.0 + 2000.0 * i,
                altitude_m=5000.0 + 500.0 * i,
                period_s=120.0 + 20.0 * i,
                phase=i * 2 * math.pi / max(aircraft, 1),
            )
            for i in range(aircraft)
        ]

    def _missile(self, t: float) -> TrackedObject | None:
        if not self.orbits:
            return None
        index = int(t // self.missile_interval)
        launched = index * self.missile_interval
        age = t - launched
        if age > self.missile_flight + self.wreck_linger:
            return None

        shooter = self.orbits[0]
        start = shooter.coords_at(launched, self.center_lon, self.center_lat)
        progress = min(age / self.missile_flight, 1.0)
        lon = start.longitude + (self.center_lon - start.longitude) * progress
        lat = start.latitude + (self.center_lat - start.latitude) * progress
        alt = start.altitude * (1.0 - progress)
        lifecycle = Lifecycle.DESTROYED if age >= self.missile_flight else Lifecycle.ALIVE

        return TrackedObject(
            id=MISSILE_BASE_ID + index,
            coords=Coords(longitude=round(lon, 7), latitude=round(lat, 7), altitude=round(alt, 1)),
            properties=(
                Property("Type", "Weapon+Missile"),
                Property("Name", "AIM-120C"),
                Property("Parent", format(shooter.object_id, "x")),
                Property("Coalition", shooter.coalition),
                Property("Color", shooter.color),
            ),
            lifecycle=lifecycle,
        )

    def snapshot_at(self, t: float) -> list[TrackedObject]:
        """The world at ``t`` seconds after start."""
        objects = [
            TrackedObject(
                id=orbit.object_id,
                coords=orbit.coords_at(t, self.center_lon, self.center_lat),
                properties=orbit.properties_at(t),
            )
            for orbit in self.orbits
        ]
        missile = self._missile(t)
        if missile:
            objects.append(missile)
        return objects

    def snapshot(self) -> list[TrackedObject]:
        """The world now, according to the clock."""
        return self.snapshot_at(self._clock() - self._started)
