import blenderproc as bproc
import argparse, logging, os, sys

import bpy
from tqdm import tqdm

from keypoint_sim.blender_host import BlenderHost, find_objects, set_intrinsics
from keypoint_sim.config import load_camera_params, load_run_config, setup_logging
from keypoint_sim.controller import ScanController
from keypoint_sim.writer import DatasetWriter

# Sweeps the camera over the target in a .blend scene and writes the keypoint dataset.
#   blenderproc pip install -e .
#   blenderproc run rendering_scan.py -- --blend scenes/fuelcap.blend --scenes configs/scenes.yaml

logger = logging.getLogger("rendering_scan")


def parse_args():
    p = argparse.ArgumentParser()
    p.add_argument("--blend", required=True, help="Path to .blend")
    p.add_argument("--scenes", default="configs/scenes.yaml", help="Run config YAML (scan settings + scene list)")
    p.add_argument("--camera_json", default="configs/camera.json", help="Camera intrinsics JSON (fx, fy, cx, cy, width, height)")
    p.add_argument("--output_dir", default=None, help="Overrides output_dir from the run config")
    p.add_argument("--camera", default="Camera", help="Camera object name")
    p.add_argument("--target", default="FuelCapInner", help="Mesh whose vertices define the bounding box")
    p.add_argument("--light", default="Sun", help="Directional light object name")
    p.add_argument("--kp_prefix", default="kp_", help="Prefix of keypoint empties")
    p.add_argument("--splat_prefix", default="TerrainSplat_", help="Prefix of terrain splat images, one per layer")
    p.add_argument("--engine", default="BLENDER_EEVEE", choices=["CYCLES", "BLENDER_EEVEE"], help="Render engine")
    p.add_argument("--max_ticks", type=int, default=2_000_000, help="Hard stop for the tick loop")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--log_level", default="INFO")
    return p.parse_args(sys.argv[sys.argv.index("--")+1:] if "--" in sys.argv else sys.argv[1:])


def main():
    args = parse_args()
    setup_logging(args.log_level)
    cfg = load_run_config(args.scenes, output_dir=args.output_dir)
    os.makedirs(cfg.output_dir, exist_ok=True)

    bproc.init()
    bproc.loader.load_blend(args.blend)
    bpy.context.scene.render.engine = args.engine

    fx, fy, cx, cy, W, H = load_camera_params(args.camera_json)
    set_intrinsics(fx, fy, cx, cy, W, H)

    objs = find_objects([args.camera, args.target, args.light])
    if objs[args.camera] is None or objs[args.target] is None:
        raise RuntimeError(f"Camera '{args.camera}' and target '{args.target}' must exist in {args.blend}")

    kp_objs = sorted((o for o in bpy.data.objects if o.type == "EMPTY" and o.name.startswith(args.kp_prefix)),
                     key=lambda o: o.name)
    if not kp_objs:
        logger.warning("No keypoint empties with prefix '%s' found", args.kp_prefix)
    splats = sorted((img for img in bpy.data.images if img.name.startswith(args.splat_prefix)),
                    key=lambda img: img.name)

    writer = DatasetWriter(cfg.output_dir)
    host = BlenderHost(objs[args.camera], objs[args.target], objs[args.light], kp_objs,
                       image_path=writer.image_path, splat_images=splats, seed=args.seed)
    controller = ScanController(host, cfg.scenes, writer, settings=cfg.scan)

    try:
        with tqdm(total=args.max_ticks, desc="Scanning") as pbar:
            while not controller.finished and pbar.n < args.max_ticks:
                controller.tick()
                pbar.update(1)
    finally:
        controller.close()

    if controller.finished:
        logger.info("[OK] Dataset written to %s", cfg.output_dir)
    else:
        logger.warning("Stopped after %d ticks before all scenes were done", args.max_ticks)


if __name__ == "__main__":
    main()
