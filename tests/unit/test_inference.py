from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from errors import ExtractorLoadError, ExtractorNotReadyError
from inference import MobileNetExtractor, Prediction, format_percent, pil_preprocess


def test_pil_preprocess_shape_and_normalisation() -> None:
    image = Image.new("RGB", (320, 240), (124, 116, 104))

    arr = pil_preprocess(image)

    assert arr.shape == (3, 224, 224)
    assert arr.dtype == np.float32
    # close to the ImageNet mean, so close to zero after normalising
    assert np.abs(arr).max() < 0.05


def test_pil_preprocess_converts_greyscale() -> None:
    arr = pil_preprocess(Image.new("L", (50, 50), 255), size=(32, 32))

    assert arr.shape == (3, 32, 32)


def test_format_percent() -> None:
    assert format_percent(0.73251) == "73.25%"
    assert format_percent(0.0) == "0.00%"
    assert format_percent(1.0) == "100.00%"


def test_prediction_helpers() -> None:
    prediction = Prediction(prob_a=0.2, prob_b=0.8)

    assert prediction.best_index == 1
    assert prediction.percentages() == ("20.00%", "80.00%")


def test_embed_before_load_raises() -> None:
    with pytest.raises(ExtractorNotReadyError):
        MobileNetExtractor(pretrained=False).embed(Image.new("RGB", (224, 224)))


def test_unknown_version_is_a_load_error() -> None:
    extractor = MobileNetExtractor(version="v9", pretrained=False)

    with pytest.raises(ExtractorLoadError):
        extractor.load()
    assert not extractor.loaded


def test_pretrained_requires_full_width() -> None:
    with pytest.raises(ExtractorLoadError):
        MobileNetExtractor(alpha=0.5, pretrained=True).load()


def test_embedding_is_deterministic_and_fixed_width() -> None:
    extractor = MobileNetExtractor(version="v2", pretrained=False).load()
    image = Image.new("RGB", (300, 200), (200, 30, 90))

    first = extractor.embed(image)
    second = extractor.embed(image)

    assert extractor.dim == 1280
    assert first.shape == (1280,)
    assert first.dtype == np.float32
    np.testing.assert_array_equal(first, second)
    assert all(not p.requires_grad for p in extractor.model.parameters())


def test_load_is_idempotent() -> None:
    extractor = MobileNetExtractor(version="v3_small", pretrained=False)

    model = extractor.load().model
    extractor.load()

    assert extractor.model is model
    assert extractor.dim == 576
