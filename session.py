"""
Session: the one object that owns camera, extractor, samples, classifier
and live predictor for a capture-train-predict run.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import numpy as np
from PIL import Image

from capture import Camera
from config import Config, get_config
from errors import ExtractorNotReadyError, NotTrainedError, TrainingInProgressError
from inference import MobileNetExtractor, Prediction
from live import LivePredictor
from samples import Label, Sample, SampleStore
from train import ClassifierTrainer

logger = logging.getLogger(__name__)

NEW = 'new'
LOADING = 'loading'
READY = 'ready'
FAILED = 'failed'


class Embedder(Protocol):
    loaded: bool

    def load(self): ...

    def embed(self, image: Image.Image) -> np.ndarray: ...


class Trainer(Protocol):
    def fit(self, samples_a, samples_b, on_epoch=None): ...


@dataclass(frozen=True)
class Capture:
    label: Label
    frame: Image.Image
    sample: Sample
    count: int


class Session:
    def __init__(self, camera=None, extractor: Optional[Embedder] = None,
                 trainer: Optional[Trainer] = None, config: Optional[Config] = None):
        self.config = config or get_config()
        c = self.config
        self.camera = camera if camera is not None else Camera(c.camera_index, c.frame_size)
        self.extractor = extractor if extractor is not None else MobileNetExtractor(
            version=c.extractor_version, alpha=c.extractor_alpha, pretrained=c.pretrained,
            device=c.device, input_size=c.frame_size)
        self.trainer = trainer if trainer is not None else ClassifierTrainer(c)
        self.store = SampleStore()
        self.classifier = None
        self.state = NEW
        self._predictor: Optional[LivePredictor] = None
        self._train_lock = threading.Lock()

    # -- lifecycle ----------------------------------------------------------

    def initialize(self):
        """Open the camera then load the extractor. Either failure is fatal."""
        self.open_camera()
        self.load_extractor()
        return self

    def open_camera(self):
        try:
            self.camera.open()
        except Exception:
            self.state = FAILED
            raise

    def load_extractor(self):
        if self.state == LOADING:
            raise ExtractorNotReadyError('Embedding model is already loading')
        self.state = LOADING
        try:
            self.extractor.load()
        except Exception:
            self.state = FAILED
            # the session is dead; do not hold the device
            self.camera.close()
            raise
        self.state = READY

    @property
    def ready(self):
        return self.state == READY

    def close(self):
        self.stop_prediction()
        self.camera.close()
        self.store.clear()
        self.classifier = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _require_ready(self):
        if not self.ready or not self.extractor.loaded:
            raise ExtractorNotReadyError(f'Session is not ready (state: {self.state})')

    # -- samples ------------------------------------------------------------

    def capture_sample(self, label: Label) -> Capture:
        self._require_ready()
        frame = self.camera.capture_frame()
        sample = self.store.add_sample(label, self.extractor.embed(frame))
        count = len(self.store.samples(label))
        logger.info('Captured %s sample #%d', self.class_name(label), count)
        return Capture(label=label, frame=frame, sample=sample, count=count)

    def counts(self):
        return self.store.counts()

    def class_name(self, label: Label):
        return self.config.class_names()[label.index]

    # -- training -----------------------------------------------------------

    def train(self, on_epoch=None):
        """
        Fit a new classifier on everything captured so far.

        The current classifier is only replaced once training completes;
        InsufficientDataError or any mid-run failure leaves it as it was.
        """
        self._require_ready()
        if not self._train_lock.acquire(blocking=False):
            raise TrainingInProgressError('Training is already running')
        try:
            classifier = self.trainer.fit(
                self.store.vectors(Label.A), self.store.vectors(Label.B), on_epoch=on_epoch)
        finally:
            self._train_lock.release()
        self.classifier = classifier
        return classifier

    @property
    def training(self):
        return self._train_lock.locked()

    @property
    def is_stale(self):
        """True when samples were captured after the current classifier was trained."""
        return self.classifier is not None and self.classifier.is_stale(self.counts())

    # -- prediction ---------------------------------------------------------

    def predict_once(self):
        classifier = self.classifier
        if classifier is None:
            raise NotTrainedError('Train the classifier before predicting')
        frame = self.camera.capture_frame()
        return frame, classifier.predict(self.extractor.embed(frame))

    def start_prediction(self, on_result: Callable[[Image.Image, Prediction], None],
                         on_error: Optional[Callable[[Exception], None]] = None) -> bool:
        self._require_ready()
        if self.classifier is None:
            raise NotTrainedError('Train the classifier before starting live prediction')
        if self._predictor is not None and self._predictor.busy:
            # running, or a stopped run whose last cycle has not returned yet
            logger.warning('Live prediction is already running or still finishing.')
            return False
        self._predictor = LivePredictor(
            self.predict_once,
            lambda result: on_result(*result),
            period=self.config.predict_period_seconds,
            on_error=on_error,
        )
        return self._predictor.start()

    def stop_prediction(self, timeout=5.0):
        if self._predictor is not None:
            self._predictor.stop(timeout=timeout)

    @property
    def predicting(self):
        return self._predictor is not None and self._predictor.running
