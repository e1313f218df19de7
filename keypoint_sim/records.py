"""Per-frame ground truth and its two on-disk shapes.

One ``FrameRecord`` is built per capture. ``to_descriptive`` and ``to_flat``
turn it into the named-field and the numeric-array JSON entries; both flip y
to the image convention (top-left origin).
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

from keypoint_sim.geometry import BoundingBox2D, ScreenPoint, flip_y

KEY_PREFIX = "sim_"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


@dataclass(frozen=True)
class Transform:
    position: Tuple[float, float, float]
    rotation: Tuple[float, float, float, float]  # quaternion (x, y, z, w)


@dataclass(frozen=True)
class FrameRecord:
    key: str
    camera_pose: Transform
    target_pose: Transform
    bbox: BoundingBox2D
    keypoints: Tuple[Tuple[ScreenPoint, str], ...]
    screen_height: float
    output_label: str


def make_frame_key(now: datetime, trail: int) -> str:
    """``sim_<yyyyMMddHHmmss><trail>``; the trail counter keeps keys unique within a second."""
    return f"{KEY_PREFIX}{now.strftime(TIMESTAMP_FORMAT)}{trail}"


def _pose_dict(t: Transform) -> Dict:
    x, y, z, w = (float(c) for c in t.rotation)
    px, py, pz = (float(c) for c in t.position)
    return {"rotation": {"x": x, "y": y, "z": z, "w": w},
            "position": {"x": px, "y": py, "z": pz}}


def to_descriptive(record: FrameRecord) -> Dict:
    h = record.screen_height
    top_left = ScreenPoint(record.bbox.min.x, h - record.bbox.max.y)
    bottom_right = ScreenPoint(record.bbox.max.x, h - record.bbox.min.y)
    keypoints = []
    for pos, name in record.keypoints:
        p = flip_y(pos, h)
        keypoints.append({"pos": {"x": float(p.x), "y": float(p.y)}, "name": name})
    return {
        "keypoints": keypoints,
        "cameraData": _pose_dict(record.camera_pose),
        "fuelCapData": _pose_dict(record.target_pose),
        "bbox": {
            "topLeft": {"x": float(top_left.x), "y": float(top_left.y)},
            "bottomRight": {"x": float(bottom_right.x), "y": float(bottom_right.y)},
        },
    }


def to_flat(record: FrameRecord) -> Dict:
    h = record.screen_height
    keypoints: List[List[float]] = []
    for index, (pos, _name) in enumerate(record.keypoints, start=1):
        p = flip_y(pos, h)
        keypoints.append([float(p.x), float(p.y), index])
    box = record.bbox
    return {
        "keypoints": keypoints,
        "cameraData": _pose_dict(record.camera_pose),
        "fuelCapData": _pose_dict(record.target_pose),
        "bbox": [float(box.min.x), float(h - box.max.y), float(box.max.x), float(h - box.min.y)],
        "img_dir": record.output_label,
    }
