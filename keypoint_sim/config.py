"""Run configuration (YAML), camera intrinsics (JSON) and logging setup.

Example run config::

    output_dir: Captures
    scan:
      search_step: [0.01, -0.01]
      start_offset: [-0.05, 0.05]
      column_step: -0.1
      row_step: 0.1
      depth_range: [-2.0, 0.0]
      max_search_ticks: 20000
      max_row_repairs: 100
    scenes:
      - output_label: sunny_grass
        light_intensity: 1.2
        terrain_layer: 0
        capture_quota: 200
        material: FuelCapRed
"""
import json
import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import yaml

from keypoint_sim.errors import ConfigurationMissing, InvalidSceneConfig
from keypoint_sim.scenes import SceneConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanSettings:
    """Camera step sizes and guards for the start search and the sweep.

    All steps are signed camera-space deltas. ``column_step`` moves the camera
    along x once per sweep tick, ``row_step`` along y once per row.
    """
    search_step: Tuple[float, float] = (0.01, -0.01)
    start_offset: Tuple[float, float] = (-0.05, 0.05)
    column_step: float = -0.1
    row_step: float = 0.1
    depth_range: Tuple[float, float] = (-2.0, 0.0)
    max_search_ticks: int = 20000
    max_row_repairs: int = 100

    def __post_init__(self):
        near, far = self.depth_range
        if near > far:
            raise InvalidSceneConfig(f"depth_range near={near} > far={far}")
        if self.column_step == 0 or self.row_step == 0:
            raise InvalidSceneConfig("column_step and row_step must be non-zero")
        if self.max_search_ticks < 1 or self.max_row_repairs < 1:
            raise InvalidSceneConfig("iteration caps must be >= 1")


@dataclass(frozen=True)
class RunConfig:
    output_dir: str
    scenes: List[SceneConfig]
    scan: ScanSettings = field(default_factory=ScanSettings)


def _pair(value, name):
    if len(value) != 2:
        raise InvalidSceneConfig(f"{name} needs two values, got {value!r}")
    return (float(value[0]), float(value[1]))


def scan_settings_from_dict(d) -> ScanSettings:
    d = dict(d or {})
    kwargs = {}
    for name in ("search_step", "start_offset", "depth_range"):
        if name in d:
            kwargs[name] = _pair(d.pop(name), name)
    for name in ("column_step", "row_step"):
        if name in d:
            kwargs[name] = float(d.pop(name))
    for name in ("max_search_ticks", "max_row_repairs"):
        if name in d:
            kwargs[name] = int(d.pop(name))
    if d:
        raise InvalidSceneConfig(f"unknown scan settings: {sorted(d)}")
    return ScanSettings(**kwargs)


def scene_from_dict(d) -> SceneConfig:
    try:
        return SceneConfig(
            light_intensity=float(d["light_intensity"]),
            terrain_layer=int(d["terrain_layer"]),
            capture_quota=int(d["capture_quota"]),
            output_label=str(d["output_label"]),
            material=d.get("material"),
            randomize_rotation=bool(d.get("randomize_rotation", True)),
            rotation=tuple(float(a) for a in d.get("rotation", (0.0, 0.0, 0.0))),
            randomize_distance=bool(d.get("randomize_distance", True)),
            distance=float(d.get("distance", 0.0)),
        )
    except KeyError as e:
        raise InvalidSceneConfig(f"scene entry missing field {e.args[0]!r}: {d!r}") from e
    except (TypeError, ValueError) as e:
        raise InvalidSceneConfig(f"bad scene entry {d!r}: {e}") from e


def run_config_from_dict(d, output_dir=None) -> RunConfig:
    d = d or {}
    scenes = [scene_from_dict(s) for s in d.get("scenes") or []]
    if not scenes:
        raise ConfigurationMissing("run configuration lists no scenes")
    return RunConfig(
        output_dir=output_dir or d.get("output_dir", "Captures"),
        scenes=scenes,
        scan=scan_settings_from_dict(d.get("scan")),
    )


def load_run_config(path: str, output_dir=None) -> RunConfig:
    try:
        with open(path, "r") as f:
            d = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationMissing(f"run config not found: {path}") from e
    except yaml.YAMLError as e:
        raise InvalidSceneConfig(f"could not parse {path}: {e}") from e
    cfg = run_config_from_dict(d, output_dir=output_dir)
    logger.info("Loaded %d scene(s) from %s", len(cfg.scenes), path)
    return cfg


def load_camera_params(path: str):
    """Read fx, fy, cx, cy, width, height from a camera.json file."""
    with open(path, "r") as f:
        cam = json.load(f)
    try:
        fx, fy, cx, cy = float(cam["fx"]), float(cam["fy"]), float(cam["cx"]), float(cam["cy"])
        W, H = int(cam["width"]), int(cam["height"])
    except KeyError as e:
        raise ConfigurationMissing(f"{path} missing camera parameter {e.args[0]!r}") from e
    return fx, fy, cx, cy, W, H


def setup_logging(log_level="INFO"):
    """Configure the root logger with a single timestamped console handler."""
    formatter = logging.Formatter(
        "[%(levelname)s] [%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )
    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)
    return root
