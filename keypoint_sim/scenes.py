"""Scene configurations and the sequencer that walks through them."""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from keypoint_sim.errors import ConfigurationMissing, InvalidSceneConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SceneConfig:
    """One lighting / terrain / material profile and its capture quota."""
    light_intensity: float
    terrain_layer: int
    capture_quota: int
    output_label: str
    material: Any = None
    randomize_rotation: bool = True
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    randomize_distance: bool = True
    distance: float = 0.0

    def __post_init__(self):
        if self.capture_quota < 0:
            raise InvalidSceneConfig(f"{self.output_label}: capture_quota must be >= 0")
        if self.terrain_layer < 0:
            raise InvalidSceneConfig(f"{self.output_label}: terrain_layer must be >= 0")
        if not self.output_label:
            raise InvalidSceneConfig("output_label must be a non-empty string")


def one_hot_alpha_map(width: int, height: int, layers: int, layer_index: int) -> np.ndarray:
    """Dense (height, width, layers) splat map with weight 1.0 on ``layer_index`` only."""
    if not 0 <= layer_index < layers:
        raise InvalidSceneConfig(f"terrain layer {layer_index} out of range (terrain has {layers} layers)")
    alpha = np.zeros((height, width, layers), dtype=np.float32)
    alpha[:, :, layer_index] = 1.0
    return alpha


class SceneSequencer:
    """Ordered scene list; the active index only ever moves forward."""

    def __init__(self, configs: Sequence[SceneConfig]):
        if not configs:
            raise ConfigurationMissing("no scene configurations loaded")
        self._configs = tuple(configs)
        self.index = 0
        self.finished = False

    def __len__(self):
        return len(self._configs)

    @property
    def active(self) -> SceneConfig:
        return self._configs[self.index]

    def start(self, host) -> SceneConfig:
        self._apply(host, self.active)
        return self.active

    def advance(self, host) -> Optional[SceneConfig]:
        """Apply the next scene, or mark the sequence finished and return None."""
        if self.finished:
            return None
        if self.index + 1 >= len(self._configs):
            self.finished = True
            logger.info("Last scene '%s' done, no scenes left", self.active.output_label)
            return None
        self.index += 1
        self._apply(host, self.active)
        return self.active

    @staticmethod
    def _apply(host, config: SceneConfig):
        logger.info("Applying scene '%s' (light=%.2f, terrain layer=%d, quota=%d)",
                    config.output_label, config.light_intensity, config.terrain_layer,
                    config.capture_quota)
        host.set_light_intensity(config.light_intensity)
        host.apply_terrain_mask(config.terrain_layer)
        if config.material is not None:
            host.apply_material(config.material)
