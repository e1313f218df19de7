from datetime import datetime

import pytest

from keypoint_sim.geometry import ScreenPoint, in_bounds, project_and_bound
from keypoint_sim.records import Transform

FIXED_NOW = datetime(2024, 5, 17, 13, 45, 2)


class FakeHost:
    """Flat target: a square of ``half`` pixels around a screen centre that
    moves opposite to the camera by ``scale`` pixels per world unit."""

    def __init__(self, width=100, height=100, half=10.0, scale=100.0, center=(50.0, 50.0)):
        self.screen_size = (width, height)
        self.half = half
        self.scale = scale
        self.center = center
        self.camera = (0.0, 0.0, 0.0)
        self.target_rotation = None
        self.light_rotation = None
        self.vertices = None
        self.captures = []
        self.pending = []
        self.ended_ticks = 0
        self.calls = []

    # geometry
    def project(self, p):
        return ScreenPoint(self.center[0] + (p[0] - self.camera[0]) * self.scale,
                           self.center[1] + (p[1] - self.camera[1]) * self.scale)

    def target_vertices(self):
        if self.vertices is not None:
            return self.vertices
        h = self.half / self.scale
        return [(-h, -h, 0.0), (h, -h, 0.0), (h, h, 0.0), (-h, h, 0.0)]

    def keypoints(self):
        return [("kp_center", (0.0, 0.0, 0.0)), ("kp_corner", (self.half / self.scale, 0.0, 0.0))]

    def camera_pose(self):
        return Transform(tuple(self.camera), (0.0, 0.0, 0.0, 1.0))

    def target_pose(self):
        return Transform((0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0))

    def box(self):
        return project_and_bound(self.target_vertices(), self.project)

    # poses
    def place_camera(self, position):
        self.camera = tuple(position)

    def orient_target(self, euler_deg):
        self.target_rotation = tuple(euler_deg)

    def orient_light(self, pitch, yaw):
        self.light_rotation = (pitch, yaw)

    # capture
    def capture_image(self, key, label, width, height):
        self.captures.append((key, label, width, height, self.box()))
        self.pending.append(key)

    def end_tick(self):
        self.pending = []
        self.ended_ticks += 1

    # scene
    def apply_terrain_mask(self, layer_index):
        self.calls.append(("terrain", layer_index))

    def apply_material(self, handle):
        self.calls.append(("material", handle))

    def set_light_intensity(self, value):
        self.calls.append(("light", value))

    # environment
    def now(self):
        return FIXED_NOW

    def random_uniform(self, lo, hi):
        return lo + (hi - lo) * 0.5


class CountingLifecycle:
    def __init__(self):
        self.stops = 0

    def stop(self):
        self.stops += 1


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def lifecycle():
    return CountingLifecycle()


def box_in_bounds(host, box):
    return in_bounds(box, host.screen_size)
