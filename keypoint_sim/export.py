# converter of the flat frame view to YOLO pose label files
import json
import logging
import os
from typing import Dict, List

from keypoint_sim.writer import FLAT_FILE

logger = logging.getLogger(__name__)


def frame_to_yolo_line(frame: Dict, width: float, height: float, cls: int = 0) -> str:
    x0, y0, x1, y1 = frame["bbox"]
    # partially visible boxes: clip to the image first
    x0, x1 = min(max(x0, 0.0), width), min(max(x1, 0.0), width)
    y0, y1 = min(max(y0, 0.0), height), min(max(y1, 0.0), height)
    # bbox center + normalize
    cx = (x0 + x1) / 2.0 / width
    cy = (y0 + y1) / 2.0 / height
    nw = (x1 - x0) / width
    nh = (y1 - y0) / height

    kps_norm: List[float] = []
    for x, y, _index in frame.get("keypoints", []):
        kx = min(max(x / width, 0.0), 1.0)
        ky = min(max(y / height, 0.0), 1.0)
        # visibility 2 when the point lands on the image, 1 when clamped
        kv = 2 if (0.0 <= x <= width and 0.0 <= y <= height) else 1
        kps_norm.extend([kx, ky, kv])

    line = [cls, cx, cy, nw, nh] + kps_norm
    return " ".join(map(str, line))


def convert_output_dir(output_dir: str, width: int, height: int, labels_dir: str = None) -> int:
    """Write ``labels/<img_dir>/<key>.txt`` next to the image folders; returns the count."""
    with open(os.path.join(output_dir, FLAT_FILE), "r") as f:
        frames = json.load(f)
    labels_dir = labels_dir or os.path.join(output_dir, "labels")

    for key, frame in frames.items():
        lbl_dir = os.path.join(labels_dir, frame.get("img_dir", ""))
        os.makedirs(lbl_dir, exist_ok=True)
        with open(os.path.join(lbl_dir, f"{key}.txt"), "w") as f:
            f.write(frame_to_yolo_line(frame, float(width), float(height)))
    logger.info("Wrote %d YOLO label files under %s", len(frames), labels_dir)
    return len(frames)
