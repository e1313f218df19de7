import json
import os
from datetime import datetime

import cv2
import numpy as np
import pytest

from keypoint_sim.controller import Phase, ScanController
from keypoint_sim.geometry import in_bounds, project_and_bound
from keypoint_sim.pinhole import PinholeHost, material_color, sphere_points
from keypoint_sim.scenes import SceneConfig
from keypoint_sim.writer import DatasetWriter, read_keys

W, H = 640, 480


def make_host(writer=None, **kwargs):
    return PinholeHost(
        500.0, 500.0, W / 2, H / 2, W, H,
        vertices=sphere_points(0.5, 64),
        keypoints={"top": (0.0, 0.5, 0.0), "front": (0.0, 0.0, -0.5), "right": (0.5, 0.0, 0.0)},
        image_path=writer.image_path if writer is not None else None,
        clock=lambda: datetime(2024, 3, 1, 9, 0, 0),
        seed=3,
        **kwargs,
    )


def test_projection_is_bottom_left():
    host = make_host()
    centre = host.project((0.0, 0.0, 5.0))
    assert centre == pytest.approx((320.0, 240.0))
    assert host.project((0.0, 1.0, 5.0)).y > centre.y
    assert host.project((0.0, 0.0, -1.0)) is None


def test_render_paints_terrain_and_target():
    host = make_host()
    host.apply_terrain_mask(2)
    host.apply_material((0, 0, 255))
    img = host.render()
    assert img.shape == (H, W, 3)
    corner = img[0, 0].astype(int)
    assert corner[0] == corner[1] == corner[2]  # concrete is grey
    centre = img[H // 2, W // 2]
    assert centre[2] > centre[0] and centre[2] > centre[1]


def test_material_color_is_stable_per_name():
    assert material_color("FuelCapRed") == material_color("FuelCapRed")
    assert material_color((1, 2, 3)) == (1, 2, 3)


def test_end_to_end_scan(tmp_path):
    writer = DatasetWriter(str(tmp_path))
    host = make_host(writer)
    scenes = [
        SceneConfig(light_intensity=1.0, terrain_layer=0, capture_quota=3, output_label="grass"),
        SceneConfig(light_intensity=0.7, terrain_layer=1, capture_quota=3, output_label="dirt",
                    material="FuelCapBlue"),
    ]
    controller = ScanController(host, scenes, writer)
    ticks = controller.run(max_ticks=20000)
    assert ticks < 20000
    assert controller.state.phase is Phase.FINISHED

    with open(os.path.join(tmp_path, "AllFrameData.json")) as f:
        flat = json.load(f)
    assert len(flat) == 6
    assert read_keys(os.path.join(tmp_path, "FrameKeys.txt")) == set(flat)
    assert sorted(host.captured) == sorted(flat)

    for label in ("grass", "dirt"):
        label_dir = writer.label_dir(label)
        with open(os.path.join(label_dir, "DescriptiveFrameData.json")) as f:
            desc = json.load(f)
        assert len(desc) == 3
        assert {flat[k]["img_dir"] for k in desc} == {label}
        for key, frame in desc.items():
            img = cv2.imread(os.path.join(label_dir, f"{key}.png"))
            assert img is not None and img.shape == (H, W, 3)
            tl, br = frame["bbox"]["topLeft"], frame["bbox"]["bottomRight"]
            assert tl["x"] <= br["x"] and tl["y"] <= br["y"]
            # partially visible at least: the box overlaps the frame
            assert in_bounds_xy(tl, br)
            assert [k["name"] for k in frame["keypoints"]] == ["top", "front", "right"]


def in_bounds_xy(tl, br):
    return br["x"] >= 0 and tl["x"] <= W and br["y"] >= 0 and tl["y"] <= H


def test_captured_boxes_overlap_screen_in_host_convention(tmp_path):
    writer = DatasetWriter(str(tmp_path))
    host = make_host()
    boxes = []
    real_capture = host.capture_image

    def spy(key, label, width, height):
        boxes.append(host.target_vertices())
        real_capture(key, label, width, height)

    host.capture_image = spy
    scenes = [SceneConfig(light_intensity=1.0, terrain_layer=3, capture_quota=5, output_label="sand")]
    ScanController(host, scenes, writer).run(max_ticks=20000)
    assert len(boxes) == 5
    for verts in boxes:
        assert in_bounds(project_and_bound(verts, host.project), host.screen_size)
    assert np.all(host.alpha_map[:, :, 3] == 1.0)
