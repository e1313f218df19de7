"""Host backed by a Blender scene (run inside ``blenderproc run``).

Terrain layers are modeled as greyscale splat images, one per layer, that the
terrain material mixes by; ``apply_terrain_mask`` rewrites all of them.
"""
import logging
import math
import os
import random
from datetime import datetime

import bpy
import numpy as np
from blenderproc.python.camera import CameraUtility
from bpy_extras.object_utils import world_to_camera_view
from mathutils import Euler, Vector

from keypoint_sim.geometry import ScreenPoint, intrinsics_matrix
from keypoint_sim.records import Transform
from keypoint_sim.scenes import one_hot_alpha_map

logger = logging.getLogger(__name__)


def set_intrinsics(fx, fy, cx, cy, width, height):
    K = intrinsics_matrix(fx, fy, cx, cy)
    CameraUtility.set_intrinsics_from_K_matrix(K, width, height)


def find_objects(names):
    """Return name->object for the given names, warning about the missing ones."""
    found = {}
    for n in names:
        o = bpy.data.objects.get(n)
        if o is None:
            logger.warning("Object '%s' not found in the scene", n)
        found[n] = o
    return found


def _transform(obj) -> Transform:
    mw = obj.matrix_world
    q = mw.to_quaternion()
    t = mw.translation
    return Transform((float(t.x), float(t.y), float(t.z)),
                     (float(q.x), float(q.y), float(q.z), float(q.w)))


class BlenderHost:
    def __init__(self, camera, target, light, keypoint_objs, image_path,
                 splat_images=(), material_target=None, clock=None, seed=None):
        self.scene = bpy.context.scene
        self.camera = camera
        self.target = target
        self.light = light
        self.keypoint_objs = list(keypoint_objs)
        self.image_path = image_path  # (label, key) -> path
        self.splat_images = list(splat_images)
        self.material_target = material_target or target
        self._clock = clock or datetime.now
        self._rng = random.Random(seed)
        self.pending = []
        self.target.rotation_mode = "XYZ"

    @property
    def screen_size(self):
        r = self.scene.render
        return (int(r.resolution_x), int(r.resolution_y))

    # ----------------------------------------------------------- geometry

    def project(self, point):
        co = world_to_camera_view(self.scene, self.camera, Vector(point))
        if co.z <= 0.0:
            return None  # behind camera
        w, h = self.screen_size
        return ScreenPoint(co.x * w, co.y * h)

    def target_vertices(self):
        if self.target.type != "MESH" or not self.target.data.vertices:
            return []
        mw = self.target.matrix_world
        return [tuple(mw @ v.co) for v in self.target.data.vertices]

    def keypoints(self):
        return [(o.name, tuple(o.matrix_world.translation)) for o in self.keypoint_objs]

    def camera_pose(self):
        return _transform(self.camera)

    def target_pose(self):
        return _transform(self.target)

    # -------------------------------------------------------------- poses

    def place_camera(self, position):
        self.camera.location = Vector(position)
        bpy.context.view_layer.update()

    def orient_target(self, euler_deg):
        self.target.rotation_euler = Euler([math.radians(a) for a in euler_deg], "XYZ")
        bpy.context.view_layer.update()

    def orient_light(self, pitch, yaw):
        if self.light is not None:
            self.light.rotation_euler = Euler((math.radians(pitch), 0.0, math.radians(yaw)), "XYZ")

    # ------------------------------------------------------------ capture

    def capture_image(self, key, label, width, height):
        self.pending.append((key, label, int(width), int(height)))

    def end_tick(self):
        pending, self.pending = self.pending, []
        render = self.scene.render
        for key, label, w, h in pending:
            path = self.image_path(label, key)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            render.resolution_x, render.resolution_y = w, h
            render.resolution_percentage = 100
            render.filepath = path
            bpy.ops.render.render(write_still=True)

    # -------------------------------------------------------------- scene

    def apply_terrain_mask(self, layer_index):
        if not self.splat_images:
            logger.warning("No terrain splat images configured, ignoring terrain layer %d", layer_index)
            return
        w, h = self.splat_images[0].size
        alpha = one_hot_alpha_map(w, h, len(self.splat_images), layer_index)
        for i, img in enumerate(self.splat_images):
            rgba = np.repeat(alpha[:, :, i:i + 1], 4, axis=2)
            rgba[:, :, 3] = 1.0
            img.pixels.foreach_set(rgba.ravel())
            img.update()

    def apply_material(self, handle):
        mat = bpy.data.materials.get(handle)
        if mat is None:
            logger.error("Material '%s' not found, keeping the current one", handle)
            return
        materials = self.material_target.data.materials
        if len(materials):
            materials[0] = mat
        else:
            materials.append(mat)

    def set_light_intensity(self, value):
        if self.light is not None:
            self.light.data.energy = float(value)

    # -------------------------------------------------------- environment

    def now(self):
        return self._clock()

    def random_uniform(self, lo, hi):
        return self._rng.uniform(lo, hi)
