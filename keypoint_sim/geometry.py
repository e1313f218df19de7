"""Screen-space geometry and visibility tests.

Screen points are stored with the host projection's convention: origin at the
bottom-left corner, y growing upward. The dataset serializers are the only
place where y is flipped to the image convention (top-left origin, y down);
see ``flip_y``.
"""
import math
from dataclasses import dataclass
from typing import Callable, Iterable, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from keypoint_sim.errors import EmptyGeometry

Point3D = Tuple[float, float, float]


class ScreenPoint(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class BoundingBox2D:
    """Axis-aligned screen rectangle around the projected target."""
    min: ScreenPoint
    max: ScreenPoint

    def __post_init__(self):
        if self.min.x > self.max.x or self.min.y > self.max.y:
            raise ValueError(f"degenerate bounding box: min={self.min} max={self.max}")


def project_and_bound(vertices: Sequence[Point3D],
                      to_screen: Callable[[Point3D], Optional[ScreenPoint]]) -> BoundingBox2D:
    """Project every vertex and reduce to the enclosing screen rectangle.

    ``to_screen`` may return None for a vertex it cannot project (behind the
    camera); such vertices are dropped. Raises EmptyGeometry when nothing is
    left to bound.
    """
    if len(vertices) == 0:
        raise EmptyGeometry("target has no vertices")
    xs, ys = [], []
    for v in vertices:
        p = to_screen(v)
        if p is None:
            continue
        xs.append(float(p[0])); ys.append(float(p[1]))
    if not xs:
        raise EmptyGeometry(f"none of {len(vertices)} vertices projected onto the screen plane")
    return BoundingBox2D(ScreenPoint(min(xs), min(ys)), ScreenPoint(max(xs), max(ys)))


def in_bounds_x(box: BoundingBox2D, screen_width: float) -> bool:
    # partial overlap counts as in bounds
    return box.max.x >= 0 and box.min.x <= screen_width


def in_bounds_y(box: BoundingBox2D, screen_height: float) -> bool:
    return box.max.y >= 0 and box.min.y <= screen_height


def in_bounds(box: BoundingBox2D, screen_size: Tuple[float, float]) -> bool:
    w, h = screen_size
    return in_bounds_x(box, w) and in_bounds_y(box, h)


def flip_y(point: ScreenPoint, screen_height: float) -> ScreenPoint:
    """Bottom-left screen point -> top-left image point."""
    return ScreenPoint(point.x, screen_height - point.y)


# ---------------------------------------------------------------------------
# Pinhole helpers (numpy), used by hosts that do their own projection

def intrinsics_matrix(fx, fy, cx, cy) -> np.ndarray:
    return np.array([[fx, 0,  cx],
                     [0,  fy, cy],
                     [0,  0,  1]], dtype=float)


def project_pinhole(points_xyz, camera_position, K, camera_rotation=None):
    """Return (N,2) screen coords (bottom-left origin) and a validity mask.

    The camera looks along its local +Z with +Y up. ``camera_rotation`` is a
    3x3 camera-to-world matrix (identity when omitted).
    """
    P = np.asarray(points_xyz, dtype=float).reshape(-1, 3)
    R = np.eye(3) if camera_rotation is None else np.asarray(camera_rotation, dtype=float)
    Pc = (P - np.asarray(camera_position, dtype=float)) @ R  # world -> camera: R^T (P - C)
    X, Y, Z = Pc[:, 0], Pc[:, 1], Pc[:, 2]
    valid = Z > 1e-6
    Zs = np.where(valid, Z, 1.0)
    u = K[0, 0] * (X / Zs) + K[0, 2]
    v = K[1, 1] * (Y / Zs) + K[1, 2]
    return np.stack([u, v], axis=1), valid


def euler_to_matrix(euler_deg: Iterable[float]) -> np.ndarray:
    """XYZ Euler angles in degrees (X applied first) to a 3x3 rotation matrix."""
    ax, ay, az = (math.radians(a) for a in euler_deg)
    cx, sx = math.cos(ax), math.sin(ax)
    cy, sy = math.cos(ay), math.sin(ay)
    cz, sz = math.cos(az), math.sin(az)
    Rx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    Ry = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    Rz = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return Rz @ Ry @ Rx


def euler_to_quaternion(euler_deg: Iterable[float]) -> Tuple[float, float, float, float]:
    """XYZ Euler angles in degrees to an (x, y, z, w) quaternion."""
    hx, hy, hz = (math.radians(a) * 0.5 for a in euler_deg)
    cx, sx = math.cos(hx), math.sin(hx)
    cy, sy = math.cos(hy), math.sin(hy)
    cz, sz = math.cos(hz), math.sin(hz)
    # q = qz * qy * qx
    w = cz * cy * cx + sz * sy * sx
    x = cz * cy * sx - sz * sy * cx
    y = cz * sy * cx + sz * cy * sx
    z = sz * cy * cx - cz * sy * sx
    return (x, y, z, w)
