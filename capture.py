# webcam capture source: hands out the current frame as a PIL image
import logging
import threading

import cv2
from PIL import Image

from errors import CaptureError

logger = logging.getLogger(__name__)

FRAME_SIZE = 224


class Camera:
    """
    Thin wrapper over cv2.VideoCapture.

    read() returns the frame at the device's native size, capture_frame()
    returns it squashed to FRAME_SIZE x FRAME_SIZE the way the classifier
    expects. Reads are serialised because the UI and the live predictor
    share one device.
    """

    def __init__(self, index=0, frame_size=FRAME_SIZE):
        self.index = index
        self.frame_size = frame_size
        self._cap = None
        self._lock = threading.Lock()

    @property
    def is_open(self):
        return self._cap is not None

    def open(self):
        if self._cap is not None:
            return
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise CaptureError(f'Could not open camera {self.index}')
        self._cap = cap
        logger.info('Camera %d opened', self.index)

    def read(self) -> Image.Image:
        with self._lock:
            if self._cap is None:
                raise CaptureError('No active video stream')
            ret, frame = self._cap.read()
        if not ret or frame is None:
            raise CaptureError(f'Camera {self.index} returned no frame')
        # opencv hands out BGR
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def capture_frame(self) -> Image.Image:
        size = (self.frame_size, self.frame_size)
        return self.read().resize(size, Image.BILINEAR)

    def close(self):
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.info('Camera %d released', self.index)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()
