"""
MotionNet: small MLP over flattened joint-motion windows.

Architecture:
    Input  : 858 features (11 frames × 26 joints × xyz displacement)
    FC1    : 128 units, BatchNorm, ReLU, Dropout(0.3)
    FC2    : 64 units, BatchNorm, ReLU, Dropout(0.2)
    Output : 2 classes (random gesture, not-ok gesture)

This is the reference network the classifier adapter knows how to load;
the detector itself treats the model as an opaque 858 → 2 function.
"""

import os
import logging

import torch
import torch.nn as nn

logger = logging.getLogger(__name__)

# Output order matches core.types.GestureClass
DEFAULT_GESTURE_CLASSES = [
    "random_gesture",
    "not_ok",
]

NUM_DEFAULT_CLASSES = len(DEFAULT_GESTURE_CLASSES)
DEFAULT_INPUT_DIM = 11 * 26 * 3


class MotionNet(nn.Module):
    """MLP classifier for not-ok gesture windows."""

    def __init__(self, input_dim=DEFAULT_INPUT_DIM, num_classes=NUM_DEFAULT_CLASSES,
                 dropout1=0.3, dropout2=0.2):
        super().__init__()
        self.input_dim = input_dim
        self.num_classes = num_classes

        self.features = nn.Sequential(
            nn.Linear(input_dim, 128),
            nn.BatchNorm1d(128),
            nn.ReLU(inplace=True),
            nn.Dropout(dropout1),

            nn.Linear(128, 64),
            nn.BatchNorm1d(64),
            nn.ReLU(inplace=True),
            nn.Dropout(dropout2),
        )

        self.classifier = nn.Linear(64, num_classes)

        self._init_weights()

    def _init_weights(self):
        for m in self.modules():
            if isinstance(m, nn.Linear):
                nn.init.kaiming_normal_(m.weight, nonlinearity="relu")
                if m.bias is not None:
                    nn.init.zeros_(m.bias)
            elif isinstance(m, nn.BatchNorm1d):
                nn.init.ones_(m.weight)
                nn.init.zeros_(m.bias)

    def forward(self, x):
        """Forward pass.

        Args:
            x: Tensor of shape (batch, input_dim)

        Returns:
            Tensor of shape (batch, num_classes), raw logits
        """
        x = self.features(x)
        return self.classifier(x)

    def predict_proba(self, x):
        """Softmax probabilities, inference mode.

        Args:
            x: Tensor of shape (batch, input_dim)

        Returns:
            Tensor of shape (batch, num_classes)
        """
        self.eval()
        with torch.no_grad():
            return torch.softmax(self.forward(x), dim=1)

    def save_checkpoint(self, path):
        """Write weights plus the shape metadata ``load_checkpoint`` expects."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        torch.save({
            "model_state_dict": self.state_dict(),
            "input_dim": self.input_dim,
            "num_classes": self.num_classes,
            "class_names": DEFAULT_GESTURE_CLASSES[:self.num_classes],
        }, path)
        logger.info("MotionNet checkpoint saved to %s", path)

    def export_onnx(self, output_path, opset_version=13):
        """Export to ONNX with a fixed (1, input_dim) input.

        Args:
            output_path: Path to save .onnx file
            opset_version: ONNX opset
        """
        self.eval()
        dummy_input = torch.randn(1, self.input_dim)
        if next(self.parameters()).is_cuda:
            dummy_input = dummy_input.cuda()

        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        torch.onnx.export(
            self,
            dummy_input,
            output_path,
            input_names=["motion_window"],
            output_names=["gesture_logits"],
            opset_version=opset_version,
            do_constant_folding=True,
        )
        logger.info("ONNX model exported to %s", output_path)

    @classmethod
    def load_checkpoint(cls, path, device="cpu"):
        """Load a trained model from checkpoint.

        Args:
            path: Path to .pth checkpoint file
            device: Device to load onto ('cpu' or 'cuda')

        Returns:
            Loaded MotionNet in eval mode
        """
        checkpoint = torch.load(path, map_location=device)

        # Support both full checkpoint dict and raw state_dict
        if isinstance(checkpoint, dict) and "model_state_dict" in checkpoint:
            state_dict = checkpoint["model_state_dict"]
            num_classes = checkpoint.get("num_classes", NUM_DEFAULT_CLASSES)
            input_dim = checkpoint.get("input_dim", DEFAULT_INPUT_DIM)
        else:
            state_dict = checkpoint
            # Infer from layer shapes
            num_classes = state_dict["classifier.weight"].shape[0] \
                if "classifier.weight" in state_dict else NUM_DEFAULT_CLASSES
            input_dim = state_dict["features.0.weight"].shape[1] \
                if "features.0.weight" in state_dict else DEFAULT_INPUT_DIM

        model = cls(input_dim=input_dim, num_classes=num_classes)
        model.load_state_dict(state_dict)
        model.to(device)
        model.eval()
        logger.info("Loaded MotionNet (%d -> %d) from %s", input_dim, num_classes, path)
        return model
