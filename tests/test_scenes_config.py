import json
import os

import numpy as np
import pytest

from keypoint_sim.config import (ScanSettings, load_camera_params, load_run_config, run_config_from_dict,
                                 scan_settings_from_dict, scene_from_dict)
from keypoint_sim.errors import ConfigurationMissing, InvalidSceneConfig
from keypoint_sim.scenes import SceneConfig, SceneSequencer, one_hot_alpha_map

CONFIGS = os.path.join(os.path.dirname(__file__), os.pardir, "configs")


class RecordingHost:
    def __init__(self):
        self.calls = []

    def set_light_intensity(self, value):
        self.calls.append(("light", value))

    def apply_terrain_mask(self, layer):
        self.calls.append(("terrain", layer))

    def apply_material(self, handle):
        self.calls.append(("material", handle))


def cfg(label, **kwargs):
    base = dict(light_intensity=0.5, terrain_layer=1, capture_quota=2, output_label=label)
    base.update(kwargs)
    return SceneConfig(**base)


def test_one_hot_alpha_map():
    alpha = one_hot_alpha_map(8, 4, 3, 2)
    assert alpha.shape == (4, 8, 3)
    assert np.all(alpha[:, :, 2] == 1.0)
    assert np.all(alpha[:, :, :2] == 0.0)
    assert np.all(alpha.sum(axis=2) == 1.0)


@pytest.mark.parametrize("layer", [-1, 3, 10])
def test_one_hot_alpha_map_rejects_bad_layer(layer):
    with pytest.raises(InvalidSceneConfig):
        one_hot_alpha_map(8, 4, 3, layer)


def test_scene_config_validation():
    with pytest.raises(InvalidSceneConfig):
        cfg("x", capture_quota=-1)
    with pytest.raises(InvalidSceneConfig):
        cfg("")
    # invalid scene settings are also a configuration problem
    with pytest.raises(ConfigurationMissing):
        cfg("x", terrain_layer=-2)


def test_sequencer_walks_forward_and_finishes():
    host = RecordingHost()
    seq = SceneSequencer([cfg("a"), cfg("b", material="Blue", light_intensity=2.0)])
    assert seq.start(host).output_label == "a"
    assert host.calls == [("light", 0.5), ("terrain", 1)]

    host.calls.clear()
    assert seq.advance(host).output_label == "b"
    assert host.calls == [("light", 2.0), ("terrain", 1), ("material", "Blue")]
    assert seq.index == 1 and not seq.finished

    host.calls.clear()
    assert seq.advance(host) is None
    assert seq.finished
    assert seq.advance(host) is None
    assert seq.index == 1
    assert host.calls == []


def test_sequencer_needs_scenes():
    with pytest.raises(ConfigurationMissing):
        SceneSequencer([])


def test_scene_from_dict_defaults_and_errors():
    s = scene_from_dict({"output_label": "a", "light_intensity": "1.5", "terrain_layer": 0, "capture_quota": 4})
    assert s.light_intensity == 1.5
    assert s.randomize_rotation and s.randomize_distance
    assert s.material is None
    with pytest.raises(InvalidSceneConfig):
        scene_from_dict({"output_label": "a", "terrain_layer": 0, "capture_quota": 4})
    with pytest.raises(InvalidSceneConfig):
        scene_from_dict({"output_label": "a", "light_intensity": "bright", "terrain_layer": 0,
                         "capture_quota": 4})


def test_scan_settings_from_dict():
    assert scan_settings_from_dict(None) == ScanSettings()
    s = scan_settings_from_dict({"column_step": -0.2, "depth_range": [-3, -1], "max_row_repairs": 5})
    assert s.column_step == -0.2 and s.depth_range == (-3.0, -1.0) and s.max_row_repairs == 5
    with pytest.raises(InvalidSceneConfig):
        scan_settings_from_dict({"colum_step": -0.2})
    with pytest.raises(InvalidSceneConfig):
        scan_settings_from_dict({"depth_range": [0.0, -1.0]})
    with pytest.raises(InvalidSceneConfig):
        scan_settings_from_dict({"search_step": [0.01]})


def test_run_config_requires_scenes():
    with pytest.raises(ConfigurationMissing):
        run_config_from_dict({"scenes": []})
    with pytest.raises(ConfigurationMissing):
        run_config_from_dict(None)


def test_load_run_config(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(
        "output_dir: out\n"
        "scan:\n"
        "  row_step: 0.2\n"
        "scenes:\n"
        "  - {output_label: noon, light_intensity: 1.0, terrain_layer: 0, capture_quota: 3}\n"
        "  - output_label: fixed\n"
        "    light_intensity: 0.3\n"
        "    terrain_layer: 2\n"
        "    capture_quota: 1\n"
        "    randomize_rotation: false\n"
        "    rotation: [10, 20, 30]\n"
    )
    run = load_run_config(str(path))
    assert run.output_dir == "out"
    assert run.scan.row_step == 0.2
    assert [s.output_label for s in run.scenes] == ["noon", "fixed"]
    assert run.scenes[1].rotation == (10.0, 20.0, 30.0)
    assert not run.scenes[1].randomize_rotation
    assert load_run_config(str(path), output_dir="elsewhere").output_dir == "elsewhere"


def test_load_run_config_errors(tmp_path):
    with pytest.raises(ConfigurationMissing):
        load_run_config(str(tmp_path / "missing.yaml"))
    bad = tmp_path / "bad.yaml"
    bad.write_text("scenes: [unclosed\n")
    with pytest.raises(InvalidSceneConfig):
        load_run_config(str(bad))


def test_shipped_configs_load():
    run = load_run_config(os.path.join(CONFIGS, "scenes.yaml"))
    assert len(run.scenes) == 3
    assert load_camera_params(os.path.join(CONFIGS, "camera.json")) == (600.0, 600.0, 320.0, 240.0, 640, 480)


def test_load_camera_params_missing_field(tmp_path):
    path = tmp_path / "camera.json"
    path.write_text(json.dumps({"fx": 1, "fy": 1, "cx": 0, "cy": 0, "width": 10}))
    with pytest.raises(ConfigurationMissing):
        load_camera_params(str(path))
