import argparse

from keypoint_sim.config import load_camera_params, setup_logging
from keypoint_sim.export import convert_output_dir

if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Convert AllFrameData.json to YOLO pose labels.")
    ap.add_argument("--output_dir", default="Captures", help="Dataset root (holds AllFrameData.json)")
    ap.add_argument("--camera_json", default="configs/camera.json", help="Image size comes from here")
    ap.add_argument("--labels_dir", default=None, help="Default: <output_dir>/labels")
    args = ap.parse_args()

    setup_logging("INFO")
    _, _, _, _, W, H = load_camera_params(args.camera_json)
    convert_output_dir(args.output_dir, W, H, labels_dir=args.labels_dir)
