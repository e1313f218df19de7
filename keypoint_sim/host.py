"""Capabilities the scan controller expects from the host scene."""
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from keypoint_sim.geometry import Point3D, ScreenPoint
from keypoint_sim.records import Transform


class SceneHost(Protocol):
    screen_size: Tuple[int, int]

    # geometry
    def project(self, point: Point3D) -> Optional[ScreenPoint]: ...
    def target_vertices(self) -> Sequence[Point3D]: ...
    def keypoints(self) -> List[Tuple[str, Point3D]]: ...
    def camera_pose(self) -> Transform: ...
    def target_pose(self) -> Transform: ...

    # pose mutation
    def place_camera(self, position: Point3D) -> None: ...
    def orient_target(self, euler_deg: Tuple[float, float, float]) -> None: ...
    def orient_light(self, pitch: float, yaw: float) -> None: ...

    # capture, fire and forget; queued requests run in end_tick()
    def capture_image(self, key: str, label: str, width: int, height: int) -> None: ...
    def end_tick(self) -> None: ...

    # scene mutation
    def apply_terrain_mask(self, layer_index: int) -> None: ...
    def apply_material(self, handle) -> None: ...
    def set_light_intensity(self, value: float) -> None: ...

    # environment
    def now(self) -> datetime: ...
    def random_uniform(self, lo: float, hi: float) -> float: ...


class RunLifecycle(Protocol):
    def stop(self) -> None: ...


class NullLifecycle:
    """Lifecycle for hosts whose driver loop polls ``controller.finished``."""

    def __init__(self):
        self.stopped = False

    def stop(self):
        self.stopped = True
