"""Software host: numpy pinhole projection and flat-shaded OpenCV renders.

Useful without Blender, for previews of a scan configuration and for tests.
The camera has no rotation and looks along +Z with +Y up; screen points come
out with the bottom-left origin the controller expects.
"""
import logging
import math
import os
import random
import zlib
from datetime import datetime
from typing import Dict, Optional

import cv2
import numpy as np

from keypoint_sim.geometry import (ScreenPoint, euler_to_matrix, euler_to_quaternion,
                                   intrinsics_matrix, project_pinhole)
from keypoint_sim.records import Transform
from keypoint_sim.scenes import one_hot_alpha_map

logger = logging.getLogger(__name__)

# BGR ground colour per terrain layer
TERRAIN_PALETTE = np.array([
    [60, 140, 70],    # grass
    [90, 120, 150],   # dirt
    [160, 160, 160],  # concrete
    [200, 190, 150],  # sand
], dtype=np.float32)


def sphere_points(radius=0.5, n=64, seed=0):
    """Roughly uniform points on a sphere (Fibonacci lattice)."""
    i = np.arange(n, dtype=float) + 0.5
    phi = np.arccos(1 - 2 * i / n)
    theta = math.pi * (1 + 5 ** 0.5) * i
    pts = np.stack([np.cos(theta) * np.sin(phi),
                    np.sin(theta) * np.sin(phi),
                    np.cos(phi)], axis=1)
    return radius * pts


def material_color(handle):
    """BGR triple for a material handle: an explicit triple, or a stable colour per name."""
    if isinstance(handle, (list, tuple)) and len(handle) == 3:
        return tuple(int(c) for c in handle)
    rng = np.random.RandomState(zlib.crc32(str(handle).encode("utf-8")))
    return tuple(int(x) for x in rng.randint(40, 220, size=3))


class PinholeHost:
    def __init__(self, fx, fy, cx, cy, width, height, vertices, keypoints: Dict[str, tuple],
                 image_path=None, target_position=(0.0, 0.0, 5.0), terrain_layers=4,
                 terrain_resolution=(32, 32), clock=None, seed=None):
        self.K = intrinsics_matrix(fx, fy, cx, cy)
        self.screen_size = (int(width), int(height))
        self._vertices = np.asarray(vertices, dtype=float).reshape(-1, 3)
        self._keypoints = {name: np.asarray(p, dtype=float) for name, p in keypoints.items()}
        self.image_path = image_path  # (label, key) -> path; None disables rendering
        self.target_position = np.asarray(target_position, dtype=float)
        self.target_rotation = (0.0, 0.0, 0.0)
        self.light_rotation = (50.0, 0.0)
        self.camera = np.zeros(3)
        self.light_intensity = 1.0
        self.material = (180, 180, 180)
        self.terrain_layers = terrain_layers
        self.terrain_resolution = terrain_resolution
        self.alpha_map = one_hot_alpha_map(terrain_resolution[0], terrain_resolution[1], terrain_layers, 0)
        self._clock = clock or datetime.now
        self._rng = random.Random(seed)
        self.pending = []
        self.captured = []

    # ----------------------------------------------------------- geometry

    def _rotation(self):
        return euler_to_matrix(self.target_rotation)

    def _to_world(self, local_pts):
        return local_pts @ self._rotation().T + self.target_position

    def project(self, point) -> Optional[ScreenPoint]:
        uv, valid = project_pinhole([point], self.camera, self.K)
        if not valid[0]:
            return None
        return ScreenPoint(float(uv[0, 0]), float(uv[0, 1]))

    def target_vertices(self):
        return [tuple(p) for p in self._to_world(self._vertices)]

    def keypoints(self):
        return [(name, tuple(self._to_world(p.reshape(1, 3))[0])) for name, p in self._keypoints.items()]

    def camera_pose(self) -> Transform:
        return Transform(tuple(float(c) for c in self.camera), (0.0, 0.0, 0.0, 1.0))

    def target_pose(self) -> Transform:
        return Transform(tuple(float(c) for c in self.target_position),
                         euler_to_quaternion(self.target_rotation))

    # -------------------------------------------------------------- poses

    def place_camera(self, position):
        self.camera = np.asarray(position, dtype=float)

    def orient_target(self, euler_deg):
        self.target_rotation = tuple(float(a) for a in euler_deg)

    def orient_light(self, pitch, yaw):
        self.light_rotation = (float(pitch), float(yaw))

    # ------------------------------------------------------------ capture

    def capture_image(self, key, label, width, height):
        self.pending.append((key, label, int(width), int(height)))

    def end_tick(self):
        pending, self.pending = self.pending, []
        for key, label, w, h in pending:
            if self.image_path is not None:
                path = self.image_path(label, key)
                os.makedirs(os.path.dirname(path), exist_ok=True)
                if not cv2.imwrite(path, self.render(w, h)):
                    logger.warning("Could not write image %s", path)
            self.captured.append(key)

    def render(self, width=None, height=None):
        """Ground colour from the splat map, target silhouette shaded by the light."""
        W, H = self.screen_size
        width, height = width or W, height or H
        weights = self.alpha_map.mean(axis=(0, 1))
        palette = np.resize(TERRAIN_PALETTE, (self.terrain_layers, 3))
        ground = np.clip(weights @ palette * min(self.light_intensity, 2.0), 0, 255)
        img = np.empty((height, width, 3), dtype=np.uint8)
        img[:] = ground.astype(np.uint8)

        uv, valid = project_pinhole(self._to_world(self._vertices), self.camera, self.K)
        uv = uv[valid]
        if len(uv) >= 3:
            pix = np.stack([uv[:, 0] * width / W, height - uv[:, 1] * height / H], axis=1)
            hull = cv2.convexHull(np.round(pix).astype(np.int32))
            shade = 0.35 + 0.65 * math.sin(math.radians(self.light_rotation[0]))
            color = tuple(int(np.clip(c * shade * self.light_intensity, 0, 255)) for c in self.material)
            cv2.fillConvexPoly(img, hull, color, lineType=cv2.LINE_AA)
        return img

    # -------------------------------------------------------------- scene

    def apply_terrain_mask(self, layer_index):
        w, h = self.terrain_resolution
        self.alpha_map = one_hot_alpha_map(w, h, self.terrain_layers, layer_index)

    def apply_material(self, handle):
        self.material = material_color(handle)

    def set_light_intensity(self, value):
        self.light_intensity = float(value)

    # -------------------------------------------------------- environment

    def now(self):
        return self._clock()

    def random_uniform(self, lo, hi):
        return self._rng.uniform(lo, hi)
