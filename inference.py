# inference.py
import logging
import threading
from dataclasses import dataclass

import numpy as np
import torch
from PIL import Image

from errors import ExtractorLoadError, ExtractorNotReadyError
from model import EmbeddingBackbone, freeze

logger = logging.getLogger(__name__)

IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype='float32')
IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype='float32')


def pil_preprocess(pil_image, size=(224, 224)):
    """
    Minimal preprocessing using PIL + numpy:
    - convert to RGB
    - resize to size
    - scale to 0-1 and normalize using ImageNet mean/std
    - returns a float32 numpy array (C,H,W)
    """
    img = pil_image.convert('RGB').resize(size, Image.BILINEAR)
    arr = np.array(img).astype('float32') / 255.0
    arr = (arr - IMAGENET_MEAN) / IMAGENET_STD
    return arr.transpose(2, 0, 1)


def format_percent(p):
    return f'{p * 100:.2f}%'


@dataclass(frozen=True)
class Prediction:
    prob_a: float
    prob_b: float

    @property
    def best_index(self):
        return 0 if self.prob_a >= self.prob_b else 1

    def percentages(self):
        return format_percent(self.prob_a), format_percent(self.prob_b)


class MobileNetExtractor:
    """
    Frozen MobileNet that turns a frame into a fixed-length vector.

    Loading fetches ImageNet weights through torchvision and may be slow,
    so it is a separate, one-time step. embed() before load() raises
    ExtractorNotReadyError.
    """

    def __init__(self, version='v2', alpha=1.0, pretrained=True, device='cpu', input_size=224):
        self.version = version
        self.alpha = alpha
        self.pretrained = pretrained
        self.device = device
        self.input_size = input_size
        self.model = None
        self.dim = None
        self._load_lock = threading.Lock()

    @property
    def loaded(self):
        return self.model is not None

    def load(self):
        with self._load_lock:
            if self.model is not None:
                return self
            logger.info('Loading MobileNet %s (alpha=%s, pretrained=%s) on %s',
                        self.version, self.alpha, self.pretrained, self.device)
            try:
                backbone = EmbeddingBackbone(self.version, self.alpha, pretrained=self.pretrained)
                backbone = freeze(backbone).to(self.device)
            except Exception as e:
                raise ExtractorLoadError(f'Failed to load MobileNet {self.version}: {e}') from e
            self.dim = backbone.out_features
            self.model = backbone
            logger.info('MobileNet loaded, embedding width %d', self.dim)
            return self

    @torch.no_grad()
    def embed(self, image: Image.Image) -> np.ndarray:
        if self.model is None:
            raise ExtractorNotReadyError('Embedding model is not loaded yet')
        arr = pil_preprocess(image, size=(self.input_size, self.input_size))
        x = torch.from_numpy(arr).unsqueeze(0).to(self.device)  # 1,C,H,W
        return self.model(x)[0].cpu().numpy().astype(np.float32)


class TrainedClassifier:
    """A fitted classifier head plus what it was trained on."""

    def __init__(self, head, device='cpu', class_names=('Class A', 'Class B'), history=(), trained_counts=(0, 0)):
        self.head = head.to(device)
        self.head.eval()
        self.device = device
        self.class_names = tuple(class_names)
        self.history = list(history)
        self.trained_counts = tuple(trained_counts)

    def is_stale(self, counts):
        return tuple(counts) != self.trained_counts

    @torch.no_grad()
    def predict(self, vector) -> Prediction:
        x = torch.as_tensor(np.asarray(vector, dtype=np.float32), device=self.device).reshape(1, -1)
        probs = torch.softmax(self.head(x), dim=1).cpu().numpy()[0]
        return Prediction(prob_a=float(probs[0]), prob_b=float(probs[1]))

    def label_for(self, prediction: Prediction):
        return self.class_names[prediction.best_index]
