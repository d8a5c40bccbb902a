from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from livedetect.errors import FrameError

_CONVERSIONS = {
    "rgb": cv2.COLOR_RGBA2RGB,
    "bgr": cv2.COLOR_RGBA2BGR,
}


@dataclass
class Frame:
    pixels: np.ndarray
    width: int
    height: int
    rotation_degrees: int = 0
    frame_id: int = 0
    timestamp_s: float | None = None


@dataclass(frozen=True)
class TensorInput:
    image: np.ndarray
    color_order: str
    frame_id: int = 0

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


def normalize_rotation(rotation_degrees: int) -> int:
    if int(rotation_degrees) != rotation_degrees or rotation_degrees % 90 != 0:
        raise FrameError(f"rotation_degrees must be a multiple of 90, got {rotation_degrees}")
    return int(rotation_degrees) % 360


class FramePreprocessor:
    def __init__(self, color_order: str = "rgb") -> None:
        key = color_order.lower()
        if key not in _CONVERSIONS:
            raise ValueError(f"Unsupported color order: {color_order}")
        self.color_order = key

    def prepare(self, frame: Frame) -> TensorInput:
        rotation = normalize_rotation(frame.rotation_degrees)
        pixels = self._validate(frame)

        # np.rot90 turns counter-clockwise for positive k, so -rotation/90
        # quarter turns undo a clockwise sensor rotation.
        quarter_turns = -(rotation // 90)
        upright = np.rot90(pixels, k=quarter_turns) if quarter_turns else pixels

        image = cv2.cvtColor(np.ascontiguousarray(upright), _CONVERSIONS[self.color_order])
        return TensorInput(image=image, color_order=self.color_order, frame_id=frame.frame_id)

    @staticmethod
    def _validate(frame: Frame) -> np.ndarray:
        pixels = frame.pixels
        if not isinstance(pixels, np.ndarray):
            raise FrameError(f"Frame {frame.frame_id}: pixel buffer must be a numpy array")
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise FrameError(f"Frame {frame.frame_id}: expected an HxWx4 RGBA buffer, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise FrameError(f"Frame {frame.frame_id}: expected uint8 pixels, got {pixels.dtype}")
        h, w = pixels.shape[:2]
        if (w, h) != (frame.width, frame.height):
            raise FrameError(
                f"Frame {frame.frame_id}: buffer is {w}x{h} but frame declares {frame.width}x{frame.height}"
            )
        if w == 0 or h == 0:
            raise FrameError(f"Frame {frame.frame_id}: empty buffer")
        return pixels


def frame_from_bgr(
    frame_bgr: np.ndarray,
    rotation_degrees: int = 0,
    frame_id: int = 0,
    timestamp_s: float | None = None,
) -> Frame:
    """Wrap an OpenCV capture (BGR) as an RGBA Frame."""
    rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGBA)
    h, w = rgba.shape[:2]
    return Frame(
        pixels=rgba,
        width=w,
        height=h,
        rotation_degrees=rotation_degrees,
        frame_id=frame_id,
        timestamp_s=timestamp_s,
    )
