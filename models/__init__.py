"""
ML models package for not-ok gesture classification.

Provides:
    - MotionNet: Lightweight MLP over flattened joint-motion windows
    - TorchGestureClassifier: Fixed-shape adapter returning GestureProbabilities
    - ClassifierConfig: Model path, device and shape contract
"""

__all__ = [
    "MotionNet",
    "TorchGestureClassifier",
    "ClassifierConfig",
]
