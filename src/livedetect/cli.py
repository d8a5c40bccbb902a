from __future__ import annotations

import argparse
import logging
from pathlib import Path

from livedetect.config import DetectorConfig, load_detector_config


def _add_detector_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--backend", default="mediapipe", help="Detector backend (mediapipe or yolo)")
    parser.add_argument("--config", default="configs/detectors.yaml", help="Detector config YAML")
    parser.add_argument("--model-path", default=None, help="Override the model file from the config")
    parser.add_argument("--score-threshold", type=float, default=None, help="Minimum category score, in (0, 1]")
    parser.add_argument("--max-results", type=int, default=None, help="Maximum detections per frame")
    parser.add_argument("--threads", type=int, default=None, help="CPU inference threads")
    parser.add_argument("--no-gpu", action="store_true", help="Never request GPU acceleration")
    parser.add_argument(
        "--rotation",
        type=int,
        default=0,
        choices=(0, 90, 180, 270),
        help="Clockwise sensor rotation of incoming frames, in degrees",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="livedetect CLI")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run-webcam", help="Stream webcam frames through the object detector")
    _add_detector_args(run)
    run.add_argument("--camera-id", type=int, default=0, help="Webcam device id")
    run.add_argument("--duration-minutes", type=float, default=None, help="Stop automatically after N minutes")
    run.add_argument("--session-tag", default=None, help="Optional run tag appended to session id")
    run.add_argument("--display", action="store_true", help="Show annotated webcam window")
    run.add_argument("--output-dir", default="outputs", help="Directory for session summaries")

    analyze = sub.add_parser("analyze-video", help="Run the object detector over every frame of a saved video")
    _add_detector_args(analyze)
    analyze.add_argument("--input-video", required=True, help="Path to recorded video file")
    analyze.add_argument("--output-dir", default="outputs/analysis", help="Where to write analysis artifacts")

    probe = sub.add_parser("probe", help="Report whether GPU acceleration is available for a backend")
    probe.add_argument("--backend", default="mediapipe", help="Detector backend (mediapipe or yolo)")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> DetectorConfig:
    model_cfg = load_detector_config(Path(args.config), args.backend)
    return DetectorConfig.from_mapping(
        model_cfg,
        args.backend,
        model_path=args.model_path,
        score_threshold=args.score_threshold,
        max_results=args.max_results,
        thread_count=args.threads,
        acceleration_requested=False if args.no_gpu else None,
    )


def run_webcam(args: argparse.Namespace) -> int:
    from livedetect.runner import WebcamDetectionRunner

    config = build_config(args)
    runner = WebcamDetectionRunner(
        config=config,
        output_dir=Path(args.output_dir),
        camera_id=args.camera_id,
        rotation_degrees=args.rotation,
        display=args.display,
        duration_minutes=args.duration_minutes,
        session_tag=args.session_tag,
    )

    artifacts = runner.run()
    print(f"Session complete: {artifacts.session_id}")
    print(f"Summary: {artifacts.summary_path}")
    print("Key metrics:")
    print(f"  final state: {artifacts.summary['final_state']}")
    print(f"  frames delivered/processed: {artifacts.summary['frames_delivered']}/{artifacts.summary['frames_processed']}")
    print(f"  avg latency (ms): {artifacts.summary['latency_ms_avg']:.2f}")
    print(f"  p95 latency (ms): {artifacts.summary['latency_ms_p95']:.2f}")
    print(f"  effective fps: {artifacts.summary['fps_effective']:.2f}")
    return 0 if artifacts.summary["final_state"] != "failed" else 1


def analyze_video_cmd(args: argparse.Namespace) -> int:
    from livedetect.video_analysis import analyze_video

    config = build_config(args)
    artifacts = analyze_video(
        config=config,
        input_video=Path(args.input_video),
        output_dir=Path(args.output_dir),
        rotation_degrees=args.rotation,
    )
    print(f"Analysis summary: {artifacts.summary_path}")
    print(f"Frame detections: {artifacts.events_path}")
    print("Key diagnostics:")
    print(f"  processed frames: {artifacts.summary['processed_frames']}")
    print(f"  object rate: {artifacts.summary['object_rate']:.3f}")
    print(f"  avg latency (ms): {artifacts.summary['latency_ms_avg']:.2f}")
    return 0


def probe(args: argparse.Namespace) -> int:
    from livedetect.detectors.capability import CapabilityProber

    capability = CapabilityProber(backend=args.backend).probe()
    print(f"{args.backend}: {capability.name}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "run-webcam":
        return run_webcam(args)
    if args.command == "analyze-video":
        return analyze_video_cmd(args)
    if args.command == "probe":
        return probe(args)
    raise ValueError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
