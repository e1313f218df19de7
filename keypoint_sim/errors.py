"""Exceptions raised by the scan-and-capture core."""


class KeypointSimError(Exception):
    """Base class for every error raised by keypoint_sim."""


class ConfigurationMissing(KeypointSimError):
    """No usable scene configuration; the run cannot start."""


class InvalidSceneConfig(ConfigurationMissing):
    """A scene entry or scan setting is malformed."""


class GeometryUnavailable(KeypointSimError):
    """The target has no renderable geometry this tick."""


class EmptyGeometry(GeometryUnavailable):
    """Bounding box requested for an empty (or fully culled) vertex set."""


class IOFailure(KeypointSimError):
    """Reading or writing a dataset artifact failed."""


class NonTermination(KeypointSimError):
    """The start search or the row repair exceeded its iteration cap."""


class DuplicateFrameKey(KeypointSimError):
    """A frame key was produced twice within one run."""
