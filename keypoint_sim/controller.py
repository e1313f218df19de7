"""Scan-and-capture state machine.

The controller is ticked once per host step. Each tick it measures the
target's screen bounding box at the current ``ScanState`` and runs one
transition:

SEARCHING_START
    Nudge the camera along each axis on which the target is still (partially)
    on screen. Once it is off screen on both axes, step back by
    ``start_offset`` so it peeks in at a corner, freeze that position as the
    start of the sweep and switch to SWEEPING.

SWEEPING
    While the target is on screen along x, move one column, re-pose target and
    light, and capture if the new box is on screen on both axes. After running
    off the row end, move one row and go back to the frozen start x. Off
    screen on both axes means the pass is done: recenter at a new depth and
    search again.

A capture when the scene's quota is already met flushes the scene instead and
advances to the next scene configuration; after the last one the run is
FINISHED.
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

from keypoint_sim.config import ScanSettings
from keypoint_sim.errors import GeometryUnavailable, NonTermination
from keypoint_sim.geometry import (BoundingBox2D, Point3D, in_bounds, in_bounds_x, in_bounds_y,
                                   project_and_bound)
from keypoint_sim.host import NullLifecycle, RunLifecycle, SceneHost
from keypoint_sim.randomizer import PoseRandomizer
from keypoint_sim.records import FrameRecord, make_frame_key
from keypoint_sim.scenes import SceneConfig, SceneSequencer
from keypoint_sim.writer import DatasetWriter, FrameBuffer

logger = logging.getLogger(__name__)

ORIGIN = (0.0, 0.0, 0.0)


class Phase(Enum):
    SEARCHING_START = "searching_start"
    SWEEPING = "sweeping"
    SCENE_DONE = "scene_done"
    FINISHED = "finished"


class Outcome(Enum):
    """What a single tick did."""
    SEARCHING = "searching"
    START_FOUND = "start_found"
    MOVED = "moved"
    CAPTURED = "captured"
    SKIPPED = "skipped"
    ROW_DOWN = "row_down"
    RECENTERED = "recentered"
    SCENE_ADVANCED = "scene_advanced"
    FINISHED = "finished"
    IDLE = "idle"


@dataclass(frozen=True)
class ScanState:
    phase: Phase = Phase.SEARCHING_START
    camera: Point3D = ORIGIN
    start: Optional[Point3D] = None
    target_rotation: Optional[Tuple[float, float, float]] = None
    light_rotation: Optional[Tuple[float, float]] = None
    scene_index: int = 0
    captures: int = 0
    trail: int = 0
    search_ticks: int = 0


class ScanController:
    def __init__(self, host: SceneHost, scenes: Sequence[SceneConfig], writer: DatasetWriter,
                 settings: ScanSettings = ScanSettings(), lifecycle: Optional[RunLifecycle] = None):
        self.host = host
        self.sequencer = SceneSequencer(scenes)
        self.writer = writer
        self.settings = settings
        self.lifecycle = lifecycle if lifecycle is not None else NullLifecycle()
        self.randomizer = PoseRandomizer(host.random_uniform)
        self.buffer = FrameBuffer()
        self.state = ScanState()
        self._started = False
        self._closed = False

    @property
    def finished(self) -> bool:
        return self.state.phase is Phase.FINISHED

    @property
    def scene(self) -> SceneConfig:
        return self.sequencer.active

    def start(self):
        if self._started:
            return
        self._started = True
        self.sequencer.start(self.host)
        self._sync(self.state)

    # ------------------------------------------------------------------ tick

    def tick(self) -> Outcome:
        self.start()
        if self.finished:
            return Outcome.IDLE

        try:
            box = self._box_at(self.state)
            if self.state.phase is Phase.SEARCHING_START:
                state, outcome = self._search_start(self.state, box)
            else:
                state, outcome = self._sweep(self.state, box)
        except GeometryUnavailable as e:
            logger.warning("Skipping tick, target not measurable: %s", e)
            outcome = Outcome.SKIPPED
        else:
            self.state = state

        self._sync(self.state)
        self.host.end_tick()
        return outcome

    def run(self, max_ticks: int) -> int:
        """Tick until FINISHED or ``max_ticks``; returns the number of ticks taken."""
        ticks = 0
        while not self.finished and ticks < max_ticks:
            self.tick()
            ticks += 1
        return ticks

    # ------------------------------------------------------------ measuring

    def _sync(self, state: ScanState):
        self.host.place_camera(state.camera)
        if state.target_rotation is not None:
            self.host.orient_target(state.target_rotation)
        if state.light_rotation is not None:
            self.host.orient_light(*state.light_rotation)

    def _box_at(self, state: ScanState) -> BoundingBox2D:
        self._sync(state)
        return project_and_bound(self.host.target_vertices(), self.host.project)

    def _in_x(self, box):
        return in_bounds_x(box, self.host.screen_size[0])

    def _in_y(self, box):
        return in_bounds_y(box, self.host.screen_size[1])

    # ---------------------------------------------------------- transitions

    def _search_start(self, state: ScanState, box: BoundingBox2D):
        in_x, in_y = self._in_x(box), self._in_y(box)
        x, y, z = state.camera

        if not in_x and not in_y:
            dx, dy = self.settings.start_offset
            start = (x + dx, y + dy, z)
            logger.info("Start position found at %s after %d search ticks",
                        _fmt(start), state.search_ticks)
            return replace(state, phase=Phase.SWEEPING, camera=start, start=start,
                           search_ticks=0), Outcome.START_FOUND

        if state.search_ticks >= self.settings.max_search_ticks:
            raise NonTermination(
                f"no start position after {state.search_ticks} search ticks "
                f"(camera at {_fmt(state.camera)})")
        step_x, step_y = self.settings.search_step
        if in_x:
            x += step_x
        if in_y:
            y += step_y
        return replace(state, camera=(x, y, z), search_ticks=state.search_ticks + 1), Outcome.SEARCHING

    def _sweep(self, state: ScanState, box: BoundingBox2D):
        if self._in_x(box):
            x, y, z = state.camera
            state = self._repose(replace(state, camera=(x + self.settings.column_step, y, z)))
            try:
                box = self._box_at(state)
            except GeometryUnavailable as e:
                logger.warning("Target not measurable after re-pose, no capture this tick: %s", e)
                return state, Outcome.MOVED
            if in_bounds(box, self.host.screen_size):
                return self._capture_decision(state, box)
            return state, Outcome.MOVED
        if self._in_y(box):
            return self._next_row(state), Outcome.ROW_DOWN
        return self._recenter(state), Outcome.RECENTERED

    def _repose(self, state: ScanState) -> ScanState:
        scene = self.scene
        if scene.randomize_rotation:
            target = self.randomizer.random_target_rotation()
        else:
            target = tuple(scene.rotation)
        return replace(state, target_rotation=target,
                       light_rotation=self.randomizer.random_light_rotation())

    def _next_row(self, state: ScanState) -> ScanState:
        start_x = state.start[0]
        _, y, z = state.camera
        y += self.settings.row_step
        for repair in range(self.settings.max_row_repairs + 1):
            candidate = replace(state, camera=(start_x + repair * self.settings.column_step, y, z))
            if self._in_x(self._box_at(candidate)):
                return candidate
            logger.warning("Target out of bounds on x right after moving down a row, "
                           "shifting start by %d column step(s)", repair + 1)
        raise NonTermination(
            f"row repair did not bring the target back on screen after "
            f"{self.settings.max_row_repairs} column steps")

    def _recenter(self, state: ScanState) -> ScanState:
        scene = self.scene
        if scene.randomize_distance:
            depth = self.randomizer.random_distance(*self.settings.depth_range)
        else:
            depth = scene.distance
        logger.debug("Pass finished, recentering at depth %.3f", depth)
        return replace(state, phase=Phase.SEARCHING_START, camera=(0.0, 0.0, depth),
                       start=None, search_ticks=0)

    # -------------------------------------------------------------- capture

    def _capture_decision(self, state: ScanState, box: BoundingBox2D):
        scene = self.scene
        if state.captures < scene.capture_quota:
            trail = state.trail + 1
            key = make_frame_key(self.host.now(), trail)
            try:
                record = self._build_record(key, box, scene)
            except GeometryUnavailable as e:
                logger.warning("Keypoints not measurable, skipping capture: %s", e)
                return state, Outcome.SKIPPED
            self.buffer.add(record)
            width, height = self.host.screen_size
            self.host.capture_image(key, scene.output_label, width, height)
            logger.debug("Images taken on scene '%s': %d", scene.output_label, state.captures + 1)
            return replace(state, captures=state.captures + 1, trail=trail), Outcome.CAPTURED

        self._flush_scene(scene)
        state = replace(state, phase=Phase.SCENE_DONE, captures=0)
        return self._advance_scene(state)

    def _build_record(self, key: str, box: BoundingBox2D, scene: SceneConfig) -> FrameRecord:
        keypoints = []
        for name, position in self.host.keypoints():
            p = self.host.project(position)
            if p is None:
                raise GeometryUnavailable(f"keypoint {name!r} is behind the camera")
            keypoints.append((p, name))
        return FrameRecord(
            key=key,
            camera_pose=self.host.camera_pose(),
            target_pose=self.host.target_pose(),
            bbox=box,
            keypoints=tuple(keypoints),
            screen_height=float(self.host.screen_size[1]),
            output_label=scene.output_label,
        )

    # ---------------------------------------------------------- persistence

    def _flush_scene(self, scene: SceneConfig):
        n = self.writer.flush_scene(scene.output_label, self.buffer.descriptive)
        self.buffer.descriptive.clear()
        self.writer.flush_flat(self.buffer.flat)
        self.buffer.flat.clear()
        logger.info("Scene '%s' complete, flushed %d frames", scene.output_label, n)

    def _advance_scene(self, state: ScanState):
        if self.sequencer.advance(self.host) is None:
            self._finish()
            return replace(state, phase=Phase.FINISHED), Outcome.FINISHED
        return replace(state, phase=Phase.SEARCHING_START, camera=ORIGIN, start=None,
                       scene_index=self.sequencer.index, search_ticks=0), Outcome.SCENE_ADVANCED

    def _finish(self):
        self.writer.flush_flat(self.buffer.flat)
        self.buffer.flat.clear()
        self._closed = True
        logger.info("All scenes done, stopping run")
        self.lifecycle.stop()

    def close(self):
        """Flush whatever is still buffered; for runs the host ends early."""
        if self._closed:
            return
        self._closed = True
        if self.buffer.descriptive:
            self.writer.flush_scene(self.scene.output_label, self.buffer.descriptive)
            self.buffer.descriptive.clear()
        self.writer.flush_flat(self.buffer.flat)
        self.buffer.flat.clear()


def _fmt(p):
    return "(" + ", ".join(f"{c:.3f}" for c in p) + ")"
