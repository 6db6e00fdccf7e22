"""
Landing prediction from a flight's own wind history.

The balloon's recorded motion is treated as a sample of the wind field:
each point's velocity vector (degrees/second toward its successor) is
binned by altitude into fixed-size blocks and averaged. Gaps between
populated blocks are filled by interpolating the nearest populated blocks
above and below.

A landing position is then estimated by rectangular integration over the
descent: for every block between the lowest known block and the current
altitude, the block's wind displaces the payload for as long as it takes to
fall through that block at the terminal speed supplied by the caller.

Design notes:
- Outlier velocities (GPS or clock glitches) are dropped by a per-component
  speed ceiling before they reach the model.
- Per-block sample counts persist across incremental updates, so later
  points continue each block's running mean rather than restarting it.
- A predictor instance is not safe for concurrent updates; callers must
  serialize build/update calls on the same instance.
"""

import logging
from typing import Callable, Dict, List, Optional

from aurora.config import PredictionConfig
from aurora.tracking.flight import Flight, FlightPoint
from aurora.tracking.vector import ZERO_VECTOR, Vector2

logger = logging.getLogger(__name__)

# Substituted for a zero terminal speed to avoid division by zero
MIN_TERMINAL_SPEED = 1e-7

VelocityFunc = Callable[[float], float]


class PredictionNotReadyError(RuntimeError):
    """Landing requested before the altitude model was built."""


class WindModel:
    """
    Average horizontal velocity by altitude block.

    Block `b` covers the half-open altitude range [b, b + block_size).
    Block assignment floors toward negative infinity, so -10 m falls in
    block -150 for a 150 m block size.
    """

    def __init__(self, block_size: int = 150):
        self.block_size = block_size
        self.blocks: Dict[int, Vector2] = {}
        self.sample_counts: Dict[int, int] = {}
        self.lowest_block: Optional[int] = None

    def block_for(self, altitude: float) -> int:
        return int(altitude // self.block_size) * self.block_size

    def add_sample(self, block: int, vector: Vector2) -> None:
        """Fold a velocity sample into the block's running mean."""
        count = self.sample_counts.get(block, 0)
        if count == 0:
            # Replaces any interpolated estimate
            self.blocks[block] = vector
        else:
            self.blocks[block] = self.blocks[block].weighted_avg(vector, count)
        self.sample_counts[block] = count + 1

    def get(self, block: int) -> Vector2:
        return self.blocks.get(block, ZERO_VECTOR)

    def populated_blocks(self) -> List[int]:
        return sorted(self.blocks)

    def clear(self) -> None:
        self.blocks.clear()
        self.sample_counts.clear()
        self.lowest_block = None

    def __contains__(self, block: int) -> bool:
        return block in self.blocks

    def __len__(self) -> int:
        return len(self.blocks)

    def to_dict(self) -> dict:
        return {
            'block_size': self.block_size,
            'lowest_block': self.lowest_block,
            'blocks': {str(b): list(self.blocks[b]) for b in self.populated_blocks()},
        }


class LandingPredictor:
    """
    Builds a wind model from a flight and predicts landing positions.

    Usage:
        predictor = LandingPredictor(flight, constant_descent(5.0))
        predictor.build_altitude_profile()
        landing = predictor.calculate_landing(flight.last_point())

    When new points are appended to (a copy of) the flight, call
    `load(updated_flight)` and `update_altitude_profile(first_new, last_new)`.
    """

    def __init__(
        self,
        flight: Flight,
        velocity_fn: Optional[VelocityFunc] = None,
        prediction: Optional[PredictionConfig] = None,
    ):
        prediction = prediction or PredictionConfig()
        self.flight = flight
        self.velocity_fn = velocity_fn
        self.block_size = prediction.altitude_block_size
        self.max_speed = prediction.max_speed
        self.model = WindModel(self.block_size)

        # Points before this index have already been folded into the model
        self._folded_until = 0

    def load(self, flight: Flight) -> None:
        """Point the predictor at a newer snapshot of the same flight."""
        self.flight = flight

    def set_velocity_fn(self, velocity_fn: VelocityFunc) -> None:
        self.velocity_fn = velocity_fn

    @property
    def is_ready(self) -> bool:
        return self.model.lowest_block is not None

    def velocity_reasonable(self, point: FlightPoint) -> bool:
        """Both vector components within the outlier ceiling."""
        return (
            abs(point.velocity_vector.lat) <= self.max_speed
            and abs(point.velocity_vector.lng) <= self.max_speed
        )

    # -------------------------------------------------------------------------
    # Model construction
    # -------------------------------------------------------------------------

    def build_profile(self, low: int, high: int) -> int:
        """
        Fold velocity samples from points in [low, high) into the model.

        Only valid points with reasonable velocities are used. The flight's
        final point is skipped because its vector waits on a successor, and
        points folded by an earlier call are not counted twice.

        Returns the number of samples folded.
        """
        if low < 0 or low > high or high > len(self.flight):
            raise IndexError(f'Index limits [{low},{high}) out of range [0,{len(self.flight)})')

        end = min(high, len(self.flight) - 1)
        start = max(low, self._folded_until)
        if start >= end:
            return 0

        folded = 0
        for point in self.flight.iter_range(start, end):
            if self.flight.point_valid(point) and self.velocity_reasonable(point):
                self.model.add_sample(self.model.block_for(point.altitude), point.velocity_vector)
                folded += 1

        self._folded_until = end
        logger.debug(f'Folded {folded} wind samples from [{start},{end}) of flight {self.flight.uid}')
        return folded

    def fix_blocks(
        self,
        altitude_start: float,
        altitude_end: Optional[float] = None,
        set_lowest: bool = False,
    ) -> int:
        """
        Interpolate empty blocks strictly between the two altitudes.

        The range endpoints are assumed populated. An empty block takes
        the average of the nearest populated block above and below; where
        none exists in a direction, that range endpoint is used. A missing
        `altitude_end` means the highest populated block.

        Returns the number of blocks filled.
        """
        populated = self.model.populated_blocks()
        lowest = self.model.block_for(altitude_start)
        if altitude_end is None:
            highest = populated[-1] if populated else lowest
        else:
            highest = self.model.block_for(altitude_end)

        if highest < lowest:
            lowest, highest = highest, lowest

        if set_lowest:
            self.model.lowest_block = lowest

        filled = 0
        for block in range(lowest + self.block_size, highest, self.block_size):
            if block in self.model:
                continue

            above = self._find_next_populated(block, highest, self.block_size)
            below = self._find_next_populated(block, lowest, -self.block_size)
            neighbours = [self.model.blocks[b] for b in (above, below) if b in self.model]

            if len(neighbours) == 2:
                self.model.blocks[block] = neighbours[0].avg(neighbours[1])
            elif neighbours:
                self.model.blocks[block] = neighbours[0]
            else:
                continue
            filled += 1

        return filled

    def _find_next_populated(self, block: int, bound: int, step: int) -> int:
        """Scan from `block` toward `bound` (exclusive) for a populated block."""
        candidate = block + step
        while (candidate < bound) if step > 0 else (candidate > bound):
            if candidate in self.model:
                return candidate
            candidate += step
        return bound

    def build_altitude_profile(self) -> None:
        """Build the model from the whole flight, replacing any previous model."""
        first = self.flight.first_point()
        if first is None:
            raise PredictionNotReadyError(f'Flight {self.flight.uid} has no points')

        self.model.clear()
        self._folded_until = 0

        self.build_profile(0, len(self.flight))
        self.fix_blocks(first.altitude, None, set_lowest=True)

        logger.info(
            f'Built altitude profile for flight {self.flight.uid}: '
            f'{len(self.model)} blocks, lowest block {self.model.lowest_block}'
        )

    def update_altitude_profile(self, index_a: int, index_b: int) -> None:
        """
        Extend the model with points appended since the last build.

        `index_a` and `index_b` are the ends of the update range in either
        order. The lowest block is left unchanged.
        """
        low = min(index_a, index_b)
        # Previous last point only now has a velocity vector
        self.build_profile(max(low - 1, 0), len(self.flight))
        self.fix_blocks(self.flight.get(index_a).altitude, self.flight.get(index_b).altitude)

    # -------------------------------------------------------------------------
    # Prediction
    # -------------------------------------------------------------------------

    def calculate_landing(self, point: FlightPoint) -> Vector2:
        """
        Predict the touchdown position for a payload descending from `point`.

        Integrates from the model's lowest block up to the block holding
        `point`'s altitude. The top block contributes only the distance
        from its floor to the point's altitude. Blocks with no wind
        estimate contribute no drift.

        Raises PredictionNotReadyError if the model was never built or no
        terminal velocity function is set.
        """
        if self.model.lowest_block is None:
            raise PredictionNotReadyError('Lowest block not set: build altitude model first')
        if self.velocity_fn is None:
            raise PredictionNotReadyError('No terminal velocity function set')

        position = point.position
        max_block = self.model.block_for(point.altitude)

        for block in range(self.model.lowest_block, max_block + 1, self.block_size):
            # Direction of descent is irrelevant
            terminal_speed = abs(self.velocity_fn(block))
            if terminal_speed == 0:
                terminal_speed = MIN_TERMINAL_SPEED

            # Top block is partial on purpose: only the fall from the point's own
            # altitude down to the block floor, never a whole block
            distance = self.block_size if block < max_block else point.altitude - block
            block_duration = distance / terminal_speed

            if block not in self.model:
                logger.debug(f'No wind estimate for block {block}, assuming calm')
            displacement = self.model.get(block).map(lambda x: x * block_duration)
            position = position.add(displacement)

        return position
