"""Bounded random re-posing of the target object and its key light."""
from typing import Callable, Tuple

# degrees
TARGET_X_RANGE = (-50.0, 50.0)
TARGET_Y_RANGE = (-50.0, 50.0)
TARGET_Z_RANGE = (0.0, 360.0)
LIGHT_PITCH_RANGE = (20.0, 90.0)
LIGHT_YAW_RANGE = (-30.0, 70.0)


class PoseRandomizer:
    """Draws poses through a host-provided ``uniform(lo, hi)``."""

    def __init__(self, uniform: Callable[[float, float], float]):
        self._uniform = uniform

    def random_target_rotation(self) -> Tuple[float, float, float]:
        return (self._uniform(*TARGET_X_RANGE),
                self._uniform(*TARGET_Y_RANGE),
                self._uniform(*TARGET_Z_RANGE))

    def random_light_rotation(self) -> Tuple[float, float]:
        """(pitch, yaw); roll stays at 0."""
        return (self._uniform(*LIGHT_PITCH_RANGE),
                self._uniform(*LIGHT_YAW_RANGE))

    def random_distance(self, near: float, far: float) -> float:
        return self._uniform(near, far)
