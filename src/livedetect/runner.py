from __future__ import annotations

import json
import platform
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import cv2
import numpy as np

from livedetect.config import DetectorConfig
from livedetect.detectors.base import DetectionResult
from livedetect.frames import frame_from_bgr
from livedetect.listener import DetectionStateHolder, ErrorKind
from livedetect.pipeline import DetectionPipeline, PipelineState


@dataclass
class RunArtifacts:
    session_id: str
    summary_path: Path
    summary: dict


class LatencyRecorder(DetectionStateHolder):
    """State holder that also keeps per-result latencies for the session summary."""

    def __init__(self) -> None:
        super().__init__()
        self.latencies_ms: list[float] = []
        self.errors = 0

    def on_results(self, result: DetectionResult) -> None:
        self.latencies_ms.append(result.latency_ms)
        super().on_results(result)

    def on_error(self, message: str, kind: ErrorKind) -> None:
        self.errors += 1
        super().on_error(message, kind)


class WebcamDetectionRunner:
    def __init__(
        self,
        config: DetectorConfig,
        output_dir: Path,
        camera_id: int = 0,
        rotation_degrees: int = 0,
        display: bool = True,
        duration_minutes: float | None = None,
        init_timeout_s: float = 60.0,
        session_tag: str | None = None,
    ) -> None:
        self.config = config
        self.output_dir = output_dir
        self.camera_id = camera_id
        self.rotation_degrees = rotation_degrees
        self.display = display
        self.duration_minutes = duration_minutes
        self.init_timeout_s = init_timeout_s
        self.session_tag = session_tag

    def run(self) -> RunArtifacts:
        session_id = self._build_session_id(self.config.backend, self.session_tag)
        summaries_dir = self.output_dir / "summaries"
        summaries_dir.mkdir(parents=True, exist_ok=True)
        summary_path = summaries_dir / f"{session_id}.json"

        if platform.system() == "Darwin":
            cap = cv2.VideoCapture(self.camera_id, cv2.CAP_AVFOUNDATION)
        else:
            cap = cv2.VideoCapture(self.camera_id)
        if not cap.isOpened():
            raise RuntimeError(f"Could not open webcam camera_id={self.camera_id}")

        state = LatencyRecorder()
        pipeline = DetectionPipeline(self.config, state)
        start = time.time()
        frame_idx = 0

        try:
            while True:
                ok, frame_bgr = cap.read()
                if not ok:
                    break

                frame_idx += 1
                frame = frame_from_bgr(
                    frame_bgr,
                    rotation_degrees=self.rotation_degrees,
                    frame_id=frame_idx,
                    timestamp_s=time.time(),
                )
                if not pipeline.on_frame(frame):
                    break

                if self.display:
                    upright = np.ascontiguousarray(np.rot90(frame_bgr, k=-((self.rotation_degrees % 360) // 90)))
                    self._draw_overlay(upright, state, pipeline.state)
                    cv2.imshow("livedetect", upright)
                    if cv2.waitKey(1) & 0xFF == ord("q"):
                        break

                if pipeline.state is PipelineState.INITIALIZING and time.time() - start > self.init_timeout_s:
                    raise RuntimeError(f"Detector did not initialize within {self.init_timeout_s:.0f}s")

                if self.duration_minutes is not None:
                    elapsed_min = (time.time() - start) / 60.0
                    if elapsed_min >= self.duration_minutes:
                        break
        finally:
            pipeline.shutdown()
            cap.release()
            cv2.destroyAllWindows()

        elapsed_s = max(time.time() - start, 1e-6)
        summary = build_summary(
            session_id=session_id,
            config=self.config,
            final_state=pipeline.state,
            elapsed_s=elapsed_s,
            delivered=pipeline.scheduler.delivered,
            processed=pipeline.scheduler.processed,
            superseded=pipeline.scheduler.superseded,
            errors=state.errors,
            latencies_ms=state.latencies_ms,
        )

        with summary_path.open("w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2)

        return RunArtifacts(session_id=session_id, summary_path=summary_path, summary=summary)

    @staticmethod
    def _draw_overlay(frame, state: DetectionStateHolder, pipeline_state: PipelineState) -> None:
        if pipeline_state is not PipelineState.READY:
            cv2.putText(
                frame,
                f"Detector: {pipeline_state.value}",
                (16, 28),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.65,
                (0, 200, 255),
                2,
            )
            return

        result = state.results
        for det in result:
            best = det.best
            box = det.bounding_box
            p1 = (int(box.x), int(box.y))
            p2 = (int(box.x2), int(box.y2))
            cv2.rectangle(frame, p1, p2, (0, 255, 0), 2)
            if best is not None:
                cv2.putText(
                    frame,
                    f"{best.label} {best.score:.2f}",
                    (p1[0] + 4, max(p1[1] - 8, 16)),
                    cv2.FONT_HERSHEY_SIMPLEX,
                    0.55,
                    (0, 255, 0),
                    2,
                )

        cv2.putText(
            frame,
            f"Latency: {result.latency_ms:.1f} ms",
            (16, 28),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.65,
            (255, 255, 0),
            2,
        )
        cv2.putText(
            frame,
            "Press q to stop",
            (16, 58),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.6,
            (200, 200, 200),
            2,
        )

    @staticmethod
    def _build_session_id(backend: str, session_tag: str | None) -> str:
        t = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        suffix = f"_{session_tag}" if session_tag else ""
        return f"{backend}_{t}{suffix}"


def build_summary(
    session_id: str,
    config: DetectorConfig,
    final_state: PipelineState,
    elapsed_s: float,
    delivered: int,
    processed: int,
    superseded: int,
    errors: int,
    latencies_ms: list[float],
) -> dict:
    latency_arr = np.array(latencies_ms, dtype=np.float32) if latencies_ms else np.array([0.0], dtype=np.float32)
    return {
        "session_id": session_id,
        "backend": config.backend,
        "model_path": config.model_path,
        "final_state": final_state.value,
        "duration_seconds": elapsed_s,
        "frames_delivered": delivered,
        "frames_processed": processed,
        "frames_superseded": superseded,
        "frame_errors": errors,
        "results": len(latencies_ms),
        "fps_effective": processed / elapsed_s,
        "latency_ms_avg": float(np.mean(latency_arr)),
        "latency_ms_p95": float(np.percentile(latency_arr, 95)),
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
    }
