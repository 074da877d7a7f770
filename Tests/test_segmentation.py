import logging
import threading
from types import SimpleNamespace

import numpy as np
import pytest
import torch

from scan_processor import segmentation_model
from scan_processor.errors import SegmentationError
from scan_processor.segmentation import SegmentationService, create_segmentation_service
from scan_processor.segmentation_infer import TransformersSegmentationEngine, logits_to_mask
from scan_processor.segmentation_model import MODEL_ID_ENV, ModelBundle, get_model, resolve_model_id

from Tests.helpers import FailingEngine, FakeClock, StubEngine, square_mask


class _FakeInputs(dict):
    # Mimics the BatchFeature returned by image processors.
    def to(self, device):
        return self


class _FakeProcessor:
    def __init__(self) -> None:
        self.sizes = []

    def __call__(self, images, return_tensors):
        self.sizes.append(images.size)
        return _FakeInputs(pixel_values=torch.zeros(1, 3, 4, 4))


class _FakeModel(torch.nn.Module):
    # Emits a (1, 2, 3, 5) logit map with class 1 in the lower right.
    def __init__(self) -> None:
        super().__init__()
        self.weight = torch.nn.Parameter(torch.zeros(1))

    def forward(self, pixel_values):
        logits = torch.zeros(1, 2, 3, 5)
        logits[0, 1, 1:, 2:] = 1.0
        return SimpleNamespace(logits=logits)


def _image() -> np.ndarray:
    return np.zeros((10, 10, 3), dtype=np.uint8)


def test_run_reports_mask_and_timing():
    engine = StubEngine([square_mask()])
    service = SegmentationService(engine, clock=FakeClock(now=100, step=25))
    result = service.run(_image(), 90)
    assert result is not None
    assert result.inference_time_ms == 25
    assert result.mask.width == 100
    assert engine.calls == [((10, 10, 3), 90)]


def test_run_contains_engine_failures(caplog):
    service = SegmentationService(FailingEngine())
    with caplog.at_level(logging.ERROR):
        assert service.run(_image(), 0) is None
    assert "Error occurred in image segmentation" in caplog.text


def test_live_lane_publishes_latest_result():
    service = SegmentationService(StubEngine([square_mask()]))
    assert service.segmentation is None
    result = service.try_run_live(_image(), 0)
    assert service.segmentation is result
    assert not service.live_busy


def test_live_lane_drops_frames_while_busy():
    started = threading.Event()
    release = threading.Event()

    def block():
        started.set()
        release.wait(timeout=5)

    engine = StubEngine([square_mask()], on_infer=block)
    service = SegmentationService(engine)
    results = []
    worker = threading.Thread(target=lambda: results.append(service.try_run_live(_image(), 0)))
    worker.start()
    assert started.wait(timeout=5)

    assert service.live_busy
    assert service.try_run_live(_image(), 0) is None

    release.set()
    worker.join(timeout=5)
    assert len(engine.calls) == 1
    assert results[0] is not None
    assert service.segmentation is results[0]


def test_logits_to_mask_takes_argmax_per_pixel():
    logits = torch.zeros(1, 3, 2, 2)
    logits[0, 2, 0, 0] = 5.0
    logits[0, 1, 1, 1] = 5.0
    mask = logits_to_mask(logits)
    assert mask.dtype == np.uint8
    assert mask.tolist() == [[2, 0], [0, 1]]


def test_logits_to_mask_rejects_wrong_rank():
    with pytest.raises(ValueError):
        logits_to_mask(torch.zeros(2, 3, 4))


def test_transformers_engine_rotates_before_inference():
    processor = _FakeProcessor()
    bundle = ModelBundle(
        model=_FakeModel(), processor=processor, device=torch.device("cpu"), model_id="fake"
    )
    engine = TransformersSegmentationEngine(bundle=bundle)

    mask = engine.infer(np.zeros((2, 4, 3), dtype=np.uint8), 90)

    assert processor.sizes == [(2, 4)]
    assert (mask.width, mask.height) == (5, 3)
    assert mask.data[0].tolist() == [0, 0, 0, 0, 0]
    assert mask.data[2].tolist() == [0, 0, 1, 1, 1]


def test_resolve_model_id_prefers_argument(monkeypatch):
    monkeypatch.setenv(MODEL_ID_ENV, "org/from-env")
    assert resolve_model_id("org/explicit") == "org/explicit"
    assert resolve_model_id(None) == "org/from-env"


def test_resolve_model_id_requires_configuration(monkeypatch):
    monkeypatch.delenv(MODEL_ID_ENV, raising=False)
    with pytest.raises(SegmentationError):
        resolve_model_id(None)
    with pytest.raises(SegmentationError):
        resolve_model_id("   ")


def test_get_model_caches_loaded_bundle(monkeypatch):
    loads = []

    def fake_model(model_id):
        loads.append(model_id)
        return _FakeModel()

    monkeypatch.setattr(
        segmentation_model,
        "AutoModelForSemanticSegmentation",
        SimpleNamespace(from_pretrained=fake_model),
    )
    monkeypatch.setattr(
        segmentation_model,
        "AutoImageProcessor",
        SimpleNamespace(from_pretrained=lambda model_id: _FakeProcessor()),
    )

    first = get_model("test/cached-model", "cpu")
    second = get_model("test/cached-model", "cpu")
    assert first is second
    assert loads == ["test/cached-model"]
    assert first.device == torch.device("cpu")


def test_get_model_wraps_load_failures(monkeypatch):
    def broken(model_id):
        raise OSError("not found")

    monkeypatch.setattr(
        segmentation_model,
        "AutoModelForSemanticSegmentation",
        SimpleNamespace(from_pretrained=broken),
    )
    with pytest.raises(SegmentationError, match="test/missing-model"):
        get_model("test/missing-model", "cpu")


def test_create_segmentation_service_loads_lazily(monkeypatch):
    monkeypatch.delenv(MODEL_ID_ENV, raising=False)
    service = create_segmentation_service()
    assert isinstance(service, SegmentationService)
    assert service.segmentation is None
