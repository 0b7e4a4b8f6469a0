"""
Classifier adapter: flat motion window → GestureProbabilities.

Wraps a loaded PyTorch model behind a fixed contract:

    input   float32 vector of exactly input_dim (858) values,
            fed to the model as shape (1, input_dim)
    output  exactly num_classes (2) probabilities in GestureClass order

Shape mismatches and backend failures raise ClassifierError; the
detector cannot run without the classifier, so nothing here is retried
or silently defaulted.

Per-call tensors are created inside a scoped block and dropped on every
exit path. The model itself is held until ``release()``.
"""

import os
import logging
from contextlib import contextmanager
from dataclasses import dataclass

import numpy as np
import torch

from core.types import ClassifierError, GestureProbabilities, NUM_GESTURE_CLASSES
from models.motion_net import MotionNet, DEFAULT_INPUT_DIM

logger = logging.getLogger(__name__)


@dataclass
class ClassifierConfig:
    """Classifier configuration settings."""
    model_path: str = "models/weights/motion_net.pth"
    device: str = "auto"                  # auto | cpu | cuda
    input_dim: int = DEFAULT_INPUT_DIM
    num_classes: int = NUM_GESTURE_CLASSES
    apply_softmax: bool = False           # TorchScript models emitting logits

    @classmethod
    def from_dict(cls, config: dict) -> "ClassifierConfig":
        """Create config from dictionary."""
        return cls(
            model_path=config.get("model_path", "models/weights/motion_net.pth"),
            device=config.get("device", "auto"),
            input_dim=int(config.get("input_dim", DEFAULT_INPUT_DIM)),
            num_classes=int(config.get("num_classes", NUM_GESTURE_CLASSES)),
            apply_softmax=bool(config.get("apply_softmax", False)),
        )


def resolve_device(device: str) -> str:
    if device == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    return device


class TorchGestureClassifier:
    """Runs the not-ok gesture model on one window at a time.

    Usage::

        with TorchGestureClassifier.from_checkpoint(config) as classifier:
            probs = classifier.predict(vector)
    """

    def __init__(self, model, config: ClassifierConfig = None, device: str = "cpu"):
        """
        Args:
            model: torch.nn.Module (MotionNet or TorchScript) already on ``device``.
            config: Shape contract and output handling.
            device: Device the model lives on.
        """
        self._config = config or ClassifierConfig()
        self._model = model
        self._device = device
        self._calls = 0

        if self._model is not None:
            self._model.eval()

    @classmethod
    def from_checkpoint(cls, config: ClassifierConfig) -> "TorchGestureClassifier":
        """Load the model named by ``config.model_path``.

        ``.pt``/``.ts`` files are loaded as TorchScript, anything else as a
        MotionNet checkpoint.
        """
        path = config.model_path
        if not os.path.isfile(path):
            raise ClassifierError("Model not found: %s" % path)

        device = resolve_device(config.device)
        try:
            if os.path.splitext(path)[1] in (".pt", ".ts"):
                model = torch.jit.load(path, map_location=device)
            else:
                model = MotionNet.load_checkpoint(path, device=device)
        except Exception as e:
            raise ClassifierError("Failed to load model %s: %s" % (path, e)) from e

        model_input = getattr(model, "input_dim", config.input_dim)
        model_output = getattr(model, "num_classes", config.num_classes)
        if model_input != config.input_dim or model_output != config.num_classes:
            raise ClassifierError(
                "Model %s is %d -> %d, expected %d -> %d"
                % (path, model_input, model_output, config.input_dim, config.num_classes)
            )

        logger.info("Classifier loaded: %s on %s", path, device)
        return cls(model, config, device)

    @property
    def device(self) -> str:
        return self._device

    @property
    def calls(self) -> int:
        return self._calls

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @contextmanager
    def _input_tensor(self, features: np.ndarray):
        """Scoped (1, input_dim) tensor; dropped on every exit path."""
        tensor = torch.from_numpy(features).reshape(1, self._config.input_dim).to(self._device)
        try:
            yield tensor
        finally:
            del tensor

    def predict(self, features) -> GestureProbabilities:
        """Classify one flattened window.

        Args:
            features: array-like of exactly ``input_dim`` floats

        Returns:
            GestureProbabilities in GestureClass order
        """
        if self._model is None:
            raise ClassifierError("Classifier has been released")

        features = np.ascontiguousarray(features, dtype=np.float32).ravel()
        if features.shape != (self._config.input_dim,):
            raise ClassifierError(
                "Expected %d features, got %d" % (self._config.input_dim, features.size)
            )

        try:
            with self._input_tensor(features) as tensor, torch.no_grad():
                if hasattr(self._model, "predict_proba"):
                    output = self._model.predict_proba(tensor)
                else:
                    output = self._model(tensor)
                    if self._config.apply_softmax:
                        output = torch.softmax(output, dim=1)
                probs = output.detach().cpu().numpy().ravel()
                del output
        except Exception as e:
            raise ClassifierError("Inference failed: %s" % e) from e

        if probs.shape != (self._config.num_classes,):
            raise ClassifierError(
                "Expected %d outputs, model produced %d" % (self._config.num_classes, probs.size)
            )

        self._calls += 1
        return GestureProbabilities(probs)

    def release(self):
        """Drop the model and free device memory."""
        if self._model is None:
            return
        self._model = None
        if self._device.startswith("cuda"):
            torch.cuda.empty_cache()
        logger.info("Classifier released after %d calls", self._calls)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
