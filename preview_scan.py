import argparse
import logging

from tqdm import tqdm

from keypoint_sim.config import load_camera_params, load_run_config, setup_logging
from keypoint_sim.controller import ScanController
from keypoint_sim.pinhole import PinholeHost, sphere_points
from keypoint_sim.writer import DatasetWriter

# Runs a scan configuration against the software pinhole host (no Blender needed).
# The target is a sphere with four keypoints on the rim facing the camera.

logger = logging.getLogger("preview_scan")

KEYPOINTS = {
    "kp_right": (0.5, 0.0, 0.0),
    "kp_top": (0.0, 0.5, 0.0),
    "kp_left": (-0.5, 0.0, 0.0),
    "kp_bottom": (0.0, -0.5, 0.0),
}


def main():
    ap = argparse.ArgumentParser(description="Preview a scan run with a pinhole camera.")
    ap.add_argument("--scenes", default="configs/scenes.yaml", help="Run config YAML")
    ap.add_argument("--camera_json", default="configs/camera.json", help="Camera intrinsics JSON")
    ap.add_argument("--output_dir", default="preview_out", help="Output root")
    ap.add_argument("--target_depth", type=float, default=5.0, help="Target distance in front of the origin")
    ap.add_argument("--radius", type=float, default=0.5, help="Target sphere radius")
    ap.add_argument("--max_ticks", type=int, default=200_000)
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--no_images", action="store_true", help="Only write the JSON dataset")
    ap.add_argument("--log_level", default="INFO")
    args = ap.parse_args()

    setup_logging(args.log_level)
    cfg = load_run_config(args.scenes, output_dir=args.output_dir)
    fx, fy, cx, cy, W, H = load_camera_params(args.camera_json)

    writer = DatasetWriter(cfg.output_dir)
    host = PinholeHost(fx, fy, cx, cy, W, H,
                       vertices=sphere_points(args.radius),
                       keypoints={k: tuple(args.radius / 0.5 * c for c in v) for k, v in KEYPOINTS.items()},
                       image_path=None if args.no_images else writer.image_path,
                       target_position=(0.0, 0.0, args.target_depth),
                       seed=args.seed)
    controller = ScanController(host, cfg.scenes, writer, settings=cfg.scan)

    try:
        with tqdm(total=args.max_ticks, desc="Scanning") as pbar:
            while not controller.finished and pbar.n < args.max_ticks:
                controller.tick()
                pbar.update(1)
    finally:
        controller.close()

    print(f"Captured {len(host.captured)} frames into {cfg.output_dir}")


if __name__ == "__main__":
    main()
