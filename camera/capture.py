"""Webcam capture and frame compression."""

import cv2
import logging
import sys
from enum import Enum
from typing import Optional, Tuple
import numpy as np
import config

logger = logging.getLogger(__name__)


class CameraFailureType(Enum):
    """Types of camera access failures for user-friendly error messages."""
    NONE = "none"  # No failure - camera works
    NO_HARDWARE = "no_hardware"  # No camera hardware detected
    IN_USE = "in_use"  # Camera is being used by another application
    UNKNOWN = "unknown"  # Unknown/generic failure


CAMERA_FAILURE_MESSAGES = {
    CameraFailureType.NO_HARDWARE: "No camera detected. Connect a webcam and try again.",
    CameraFailureType.IN_USE: "Camera is busy. Close other apps using it (Zoom, Teams, browser tabs) and try again.",
    CameraFailureType.UNKNOWN: "Failed to open camera. Please check your webcam.",
}


def describe_failure(failure_type: CameraFailureType) -> str:
    """User-facing message for a failed camera open."""
    return CAMERA_FAILURE_MESSAGES.get(failure_type, CAMERA_FAILURE_MESSAGES[CameraFailureType.UNKNOWN])


def compress_frame(frame: np.ndarray, max_width: Optional[int] = None,
                   quality: Optional[int] = None) -> bytes:
    """
    Downscale and JPEG-encode a frame for upload.

    Width is capped at max_width (never upscaled) and the aspect ratio
    is preserved.

    Args:
        frame: BGR image from camera
        max_width: Width cap in pixels (default config.MAX_FRAME_WIDTH)
        quality: JPEG quality 0-100 (default config.JPEG_QUALITY)

    Returns:
        JPEG-encoded bytes

    Raises:
        ValueError: If the frame is empty or encoding fails
    """
    max_width = max_width or config.MAX_FRAME_WIDTH
    quality = quality if quality is not None else config.JPEG_QUALITY

    if frame is None or frame.size == 0:
        raise ValueError("Cannot compress an empty frame")

    source_height, source_width = frame.shape[:2]
    target_width = min(max_width, source_width)

    if target_width != source_width:
        scale = target_width / source_width
        target_height = max(1, int(round(source_height * scale)))
        # INTER_AREA gives the cleanest result when shrinking
        frame = cv2.resize(frame, (target_width, target_height), interpolation=cv2.INTER_AREA)

    ok, buffer = cv2.imencode('.jpg', frame, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")

    return buffer.tobytes()


class CameraCapture:
    """
    Manages webcam capture with context manager support.

    Provides a clean interface for opening, reading frames from,
    and closing the webcam. Calling the instance returns the current
    frame or None while the device is not ready, which is the frame
    source contract the capture scheduler expects.
    """

    def __init__(self, camera_index: int = None, width: int = None, height: int = None):
        """
        Initialize camera capture.

        Args:
            camera_index: Camera device index (default from config)
            width: Frame width in pixels (default from config)
            height: Frame height in pixels (default from config)
        """
        # Use explicit None check - 0 is a valid camera index!
        self.camera_index = camera_index if camera_index is not None else config.CAMERA_INDEX
        self.width = width if width is not None else config.FRAME_WIDTH
        self.height = height if height is not None else config.FRAME_HEIGHT
        self.cap: Optional[cv2.VideoCapture] = None
        self.is_opened = False
        self.failure_type: CameraFailureType = CameraFailureType.NONE

    def __enter__(self) -> 'CameraCapture':
        """Context manager entry - open the camera."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close the camera."""
        self.close()

    def __call__(self) -> Optional[np.ndarray]:
        success, frame = self.read_frame()
        return frame if success else None

    def open(self) -> bool:
        """
        Open the camera device.

        Returns:
            True if camera opened successfully, False otherwise.
        """
        try:
            # Use DirectShow backend on Windows for faster initialization
            if sys.platform == "win32":
                self.cap = cv2.VideoCapture(self.camera_index, cv2.CAP_DSHOW)
                if not self.cap.isOpened():
                    logger.info("DirectShow backend failed, trying default backend...")
                    self.cap = cv2.VideoCapture(self.camera_index)
            else:
                self.cap = cv2.VideoCapture(self.camera_index)

            if not self.cap.isOpened():
                logger.error(f"Failed to open camera at index {self.camera_index}")
                # Release the capture object to prevent resource leak
                self.cap.release()
                self.cap = None
                self.failure_type = self._diagnose_failure()
                return False

            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

            self.is_opened = True
            self.failure_type = CameraFailureType.NONE
            logger.info(
                f"Camera opened at index {self.camera_index} "
                f"({int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
                f"{int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))})"
            )
            return True

        except Exception as e:
            logger.error(f"Error opening camera: {e}")
            self.failure_type = CameraFailureType.UNKNOWN
            if self.cap is not None:
                self.cap.release()
                self.cap = None
            return False

    def _diagnose_failure(self) -> CameraFailureType:
        """
        Guess why the configured camera could not be opened.

        OpenCV cannot enumerate devices, so the first few indices are
        probed: if none opens there is no usable hardware, otherwise the
        configured device is most likely held by another application.
        """
        available = 0
        for index in range(4):
            try:
                cap = cv2.VideoCapture(index)
                if cap.isOpened():
                    available += 1
                cap.release()
            except Exception:
                continue

        if available == 0:
            logger.info("No camera hardware detected on this system")
            return CameraFailureType.NO_HARDWARE
        return CameraFailureType.IN_USE

    def close(self) -> None:
        """Close the camera and release resources."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None  # Prevent double-release on subsequent calls
            self.is_opened = False
            logger.info("Camera closed")

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Read a single frame from the camera.

        A failed read right after opening is normal while the device warms
        up, so it is logged at debug level only.

        Returns:
            Tuple of (success: bool, frame: numpy array or None)
        """
        if not self.is_opened or self.cap is None:
            logger.debug("Attempted to read from closed camera")
            return False, None

        try:
            ret, frame = self.cap.read()
            if not ret or frame is None or frame.size == 0:
                logger.debug("Camera frame not ready")
                return False, None
            return True, frame

        except cv2.error as e:
            logger.error(f"Error reading frame: {e}")
            return False, None
