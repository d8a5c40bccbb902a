from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import cv2
import numpy as np

from livedetect.config import DetectorConfig
from livedetect.detectors.base import DetectionResult
from livedetect.frames import frame_from_bgr
from livedetect.listener import ErrorKind
from livedetect.pipeline import DetectionPipeline, PipelineState


@dataclass
class AnalysisArtifacts:
    summary_path: Path
    events_path: Path
    summary: dict


class _FrameRecorder:
    """Collects the outcome of the frame currently being analysed."""

    def __init__(self) -> None:
        self.initialized = False
        self.init_error: str | None = None
        self.result: DetectionResult | None = None
        self.error: str | None = None

    def on_initialized(self) -> None:
        self.initialized = True

    def on_error(self, message: str, kind: ErrorKind) -> None:
        if kind.fatal:
            self.init_error = message
        else:
            self.error = message

    def on_results(self, result: DetectionResult) -> None:
        self.result = result

    def reset(self) -> None:
        self.result = None
        self.error = None


def analyze_video(
    config: DetectorConfig,
    input_video: Path,
    output_dir: Path,
    rotation_degrees: int = 0,
    init_timeout_s: float = 120.0,
) -> AnalysisArtifacts:
    """Run every frame of a recorded video through the detection pipeline.

    The worker is drained after each frame, so no frame is superseded.
    """
    if not input_video.exists():
        raise FileNotFoundError(f"Input video not found: {input_video}")

    output_dir.mkdir(parents=True, exist_ok=True)
    events_path = output_dir / f"{input_video.stem}_detections.jsonl"
    summary_path = output_dir / f"{input_video.stem}_detections_summary.json"

    recorder = _FrameRecorder()
    pipeline = DetectionPipeline(config, recorder)
    state = pipeline.wait_until_initialized(init_timeout_s)
    if state is not PipelineState.READY:
        pipeline.shutdown()
        raise RuntimeError(recorder.init_error or f"Detector not ready after {init_timeout_s:.0f}s ({state.value})")

    cap = cv2.VideoCapture(str(input_video))
    if not cap.isOpened():
        pipeline.shutdown()
        raise RuntimeError(f"Could not open video: {input_video}")

    frame_idx = 0
    processed = 0
    frames_with_objects = 0
    errors = 0
    latencies: list[float] = []
    label_counts: dict[str, int] = {}
    start = time.time()

    try:
        with events_path.open("w", encoding="utf-8") as logf:
            while True:
                ok, frame_bgr = cap.read()
                if not ok:
                    break
                frame_idx += 1

                recorder.reset()
                pipeline.on_frame(frame_from_bgr(frame_bgr, rotation_degrees=rotation_degrees, frame_id=frame_idx))
                pipeline.wait_idle()

                record: dict = {"frame_idx": frame_idx}
                if recorder.result is not None:
                    result = recorder.result
                    processed += 1
                    latencies.append(result.latency_ms)
                    if result:
                        frames_with_objects += 1
                    for det in result:
                        if det.best is not None:
                            label_counts[det.best.label] = label_counts.get(det.best.label, 0) + 1
                    record["latency_ms"] = result.latency_ms
                    record["detections"] = result.to_records()
                else:
                    errors += 1
                    record["error"] = recorder.error
                logf.write(json.dumps(record) + "\n")
    finally:
        cap.release()
        pipeline.shutdown()

    arr = np.array(latencies, dtype=np.float32) if latencies else np.array([0.0], dtype=np.float32)
    summary = {
        "video": str(input_video),
        "backend": config.backend,
        "model_path": config.model_path,
        "frames": frame_idx,
        "processed_frames": processed,
        "frame_errors": errors,
        "frames_with_objects": frames_with_objects,
        "object_rate": (frames_with_objects / processed) if processed else 0.0,
        "label_counts": dict(sorted(label_counts.items(), key=lambda kv: kv[1], reverse=True)),
        "latency_ms_avg": float(np.mean(arr)),
        "latency_ms_p95": float(np.percentile(arr, 95)),
        "wall_seconds": time.time() - start,
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
    }

    with summary_path.open("w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2)

    return AnalysisArtifacts(summary_path=summary_path, events_path=events_path, summary=summary)
