"""Draw stored ground truth over captured frames to eyeball label quality."""
import json
import os
from typing import Dict, Tuple

import cv2
import numpy as np

from keypoint_sim.writer import DESCRIPTIVE_FILE


def load_descriptive(label_dir: str) -> Dict:
    with open(os.path.join(label_dir, DESCRIPTIVE_FILE), "r") as f:
        return json.load(f)


def _kp_color(index: int) -> Tuple[int, int, int]:
    """Stable BGR colour per keypoint index."""
    rng = np.random.RandomState(index * 9973 + 12345)
    return tuple(int(x) for x in rng.randint(40, 220, size=3)[::-1])


def _safe_int_pair(x: float, y: float) -> Tuple[int, int]:
    return int(round(x)), int(round(y))


def draw_overlay(img_bgr: np.ndarray, frame: Dict, alpha: float = 0.6,
                 r: int = 4, show_labels: bool = False) -> np.ndarray:
    """Blend the frame's bbox and keypoints (descriptive shape, top-left origin) onto the image."""
    overlay = img_bgr.copy()

    box = frame["bbox"]
    p1 = _safe_int_pair(box["topLeft"]["x"], box["topLeft"]["y"])
    p2 = _safe_int_pair(box["bottomRight"]["x"], box["bottomRight"]["y"])
    cv2.rectangle(overlay, p1, p2, (0, 220, 255), 2)

    for i, kp in enumerate(frame.get("keypoints", [])):
        xi, yi = _safe_int_pair(kp["pos"]["x"], kp["pos"]["y"])
        cv2.circle(overlay, (xi, yi), r, _kp_color(i), -1, lineType=cv2.LINE_AA)
        if show_labels:
            cv2.putText(overlay, kp["name"], (xi + 6, yi - 6),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.45, (20, 20, 20), 2, cv2.LINE_AA)
            cv2.putText(overlay, kp["name"], (xi + 6, yi - 6),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.45, (255, 255, 255), 1, cv2.LINE_AA)

    return cv2.addWeighted(overlay, alpha, img_bgr, 1 - alpha, 0.0)


def overlay_label_dir(label_dir: str, out_dir: str, **kwargs) -> int:
    """Write ``<key>_overlay.png`` for every frame whose image exists; returns the count."""
    frames = load_descriptive(label_dir)
    os.makedirs(out_dir, exist_ok=True)
    written = 0
    for key, frame in frames.items():
        img = cv2.imread(os.path.join(label_dir, f"{key}.png"), cv2.IMREAD_COLOR)
        if img is None:
            continue
        cv2.imwrite(os.path.join(out_dir, f"{key}_overlay.png"), draw_overlay(img, frame, **kwargs))
        written += 1
    return written
