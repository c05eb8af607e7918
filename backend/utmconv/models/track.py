"""
Canonical track model.

Every log is reduced into this structure with:
- fixed units (seconds from log start, degrees WGS84, meters, m/s)
- one position source per sample (fused estimate preferred over raw GPS)
- no consecutive duplicate positions
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Optional

import numpy as np
from numpy.typing import NDArray

from utmconv.utils.coordinates import path_length


logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
USEC_PER_SEC = 1_000_000.0

TRACK_KEYS = ("timestamp", "gps_lon", "gps_lat", "gps_altitude", "speed")


@dataclass(frozen=True)
class TrackSample:
    """One position/speed observation."""

    elapsed_s: float   # seconds since track start
    lon: float         # degrees
    lat: float         # degrees
    alt: float         # meters
    speed: float       # m/s

    def same_position(self, other: "TrackSample") -> bool:
        """Equal on position and speed; elapsed time is not compared."""
        return (
            self.lon == other.lon
            and self.lat == other.lat
            and self.alt == other.alt
            and self.speed == other.speed
        )

    def as_tuple(self) -> tuple[float, float, float, float, float]:
        return (self.elapsed_s, self.lon, self.lat, self.alt, self.speed)


@dataclass
class Track:
    """
    Ordered, append-only sequence of samples.

    start_timestamp is the timestamp (microseconds since epoch) of the first
    message in the log. It is set once and never moves.
    """

    samples: list[TrackSample] = field(default_factory=list)
    start_timestamp: Optional[int] = None

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[TrackSample]:
        return iter(self.samples)

    def mark_start(self, timestamp: int) -> None:
        if self.start_timestamp is None:
            self.start_timestamp = timestamp

    def elapsed_since_start(self, timestamp: int) -> float:
        if self.start_timestamp is None:
            raise ValueError("Track start timestamp not set")
        return (timestamp - self.start_timestamp) / USEC_PER_SEC

    def append(self, sample: TrackSample) -> bool:
        """
        Append a sample unless it repeats the last position or goes back in time.

        Returns True if the sample was stored.
        """
        if self.samples:
            last = self.samples[-1]
            if last.same_position(sample):
                return False
            if sample.elapsed_s < last.elapsed_s:
                logger.debug(f"Dropping out-of-order sample at {sample.elapsed_s:.3f}s")
                return False
        self.samples.append(sample)
        return True

    @property
    def start_time(self) -> Optional[datetime]:
        """Start timestamp as an aware UTC datetime, truncated to milliseconds."""
        if self.start_timestamp is None:
            return None
        try:
            return EPOCH + timedelta(milliseconds=self.start_timestamp // 1000)
        except OverflowError:
            logger.warning(f"Start timestamp out of range: {self.start_timestamp}")
            return None

    def to_array(self) -> NDArray[np.float64]:
        """Samples as an (n, 5) array in TRACK_KEYS column order."""
        if not self.samples:
            return np.empty((0, len(TRACK_KEYS)), dtype=np.float64)
        return np.array([s.as_tuple() for s in self.samples], dtype=np.float64)

    def get_time_range(self) -> tuple[float, float]:
        if not self.samples:
            return (0.0, 0.0)
        return (self.samples[0].elapsed_s, self.samples[-1].elapsed_s)

    def get_bounding_box(self) -> tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat) in degrees."""
        if not self.samples:
            return (0.0, 0.0, 0.0, 0.0)
        data = self.to_array()
        return (
            float(np.min(data[:, 1])),
            float(np.min(data[:, 2])),
            float(np.max(data[:, 1])),
            float(np.max(data[:, 2])),
        )

    def path_length_m(self) -> float:
        if len(self.samples) < 2:
            return 0.0
        data = self.to_array()
        return path_length(data[:, 2], data[:, 1])

    def max_speed(self) -> float:
        if not self.samples:
            return 0.0
        return float(np.max(self.to_array()[:, 4]))


@dataclass
class TrackSummary:
    """Lightweight summary of a converted log for listing."""

    id: str
    name: str
    source_file: str
    sample_count: int
    duration_s: float
    distance_m: float
    max_speed: float
    started_at: Optional[str]
    bounding_box: tuple[float, float, float, float]
    fused_position: bool

    @classmethod
    def from_track(
        cls,
        track: Track,
        log_id: str,
        source_file: Path,
        fused_position: bool = False,
    ) -> "TrackSummary":
        start, end = track.get_time_range()
        started_at = track.start_time
        return cls(
            id=log_id,
            name=source_file.stem,
            source_file=str(source_file),
            sample_count=len(track),
            duration_s=end - start,
            distance_m=track.path_length_m(),
            max_speed=track.max_speed(),
            started_at=started_at.isoformat() if started_at else None,
            bounding_box=track.get_bounding_box(),
            fused_position=fused_position,
        )
