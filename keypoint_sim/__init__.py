"""Scan-and-capture keypoint dataset generation."""
from keypoint_sim.config import RunConfig, ScanSettings, load_camera_params, load_run_config
from keypoint_sim.controller import Outcome, Phase, ScanController, ScanState
from keypoint_sim.scenes import SceneConfig, SceneSequencer
from keypoint_sim.writer import DatasetWriter

__all__ = [
    "DatasetWriter",
    "Outcome",
    "Phase",
    "RunConfig",
    "ScanController",
    "ScanSettings",
    "ScanState",
    "SceneConfig",
    "SceneSequencer",
    "load_camera_params",
    "load_run_config",
]
