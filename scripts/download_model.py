#!/usr/bin/env python3
from __future__ import annotations

import argparse
from pathlib import Path
import urllib.request


MODEL_BASE_URL = "https://storage.googleapis.com/mediapipe-models/object_detector"
VARIANTS = {
    "efficientdet_lite0": "int8",
    "efficientdet_lite2": "int8",
    "ssd_mobilenet_v2": "float32",
}


def main() -> int:
    parser = argparse.ArgumentParser(description="Download a MediaPipe object detection model")
    parser.add_argument("--variant", default="efficientdet_lite0", choices=sorted(VARIANTS))
    parser.add_argument("--output-dir", default="models/mediapipe", help="Directory to store the .tflite file")
    args = parser.parse_args()

    url = f"{MODEL_BASE_URL}/{args.variant}/{VARIANTS[args.variant]}/latest/{args.variant}.tflite"
    out_path = Path(args.output_dir) / f"{args.variant}.tflite"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    print(f"Downloading {args.variant} to {out_path} ...")
    urllib.request.urlretrieve(url, out_path)
    print("Done.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
