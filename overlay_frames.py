import argparse, os

from keypoint_sim.overlay import overlay_label_dir
from keypoint_sim.writer import IMAGES_DIR


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--output_dir", default="Captures", help="Dataset root (holds Images/<label>/)")
    ap.add_argument("--label", required=True, help="Scene output label to visualize")
    ap.add_argument("--out", default=None, help="Where to save overlays (default: <output_dir>/overlays/<label>)")
    ap.add_argument("--alpha", type=float, default=0.6, help="Overlay opacity")
    ap.add_argument("--radius", type=int, default=4, help="Keypoint circle radius")
    ap.add_argument("--show_labels", action="store_true", help="Draw keypoint names")
    args = ap.parse_args()

    label_dir = os.path.join(args.output_dir, IMAGES_DIR, args.label)
    out_dir = args.out or os.path.join(args.output_dir, "overlays", args.label)
    n = overlay_label_dir(label_dir, out_dir, alpha=args.alpha, r=args.radius, show_labels=args.show_labels)
    print(f"Saved {n} overlays to: {out_dir}")


if __name__ == "__main__":
    main()
