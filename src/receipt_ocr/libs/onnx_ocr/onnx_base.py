"""Base class for ONNX Runtime inference with GPU/TensorRT support."""

import logging
from pathlib import Path
from typing import Union, List

import onnxruntime

from .errors import InferenceError, ModelLoadError

logger = logging.getLogger(__name__)


class ONNXInferenceBase:
    """Base class for ONNX inference with hardware acceleration."""

    def __init__(
        self,
        model_path: Union[str, Path],
        use_gpu: bool = False,
        use_tensorrt: bool = False,
    ):
        """Initialize ONNX Runtime session.

        Args:
            model_path: Path to ONNX model file
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration (requires TensorRT)

        Raises:
            ModelLoadError: If the file is missing or the runtime rejects it
        """
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ModelLoadError(f"Model not found: {model_path}")

        # Setup providers (TensorRT > CUDA > CPU)
        providers = self._get_providers(use_gpu, use_tensorrt)

        sess_opt = onnxruntime.SessionOptions()
        sess_opt.log_severity_level = 4
        sess_opt.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL

        try:
            self.session = onnxruntime.InferenceSession(
                str(self.model_path),
                sess_options=sess_opt,
                providers=providers,
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to load model {self.model_path}: {e}") from e

        # Cache input/output names
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]
        logger.debug(
            "Loaded %s with providers %s", self.model_path.name, self.session.get_providers()
        )

    def _get_providers(self, use_gpu: bool, use_tensorrt: bool) -> List:
        """Get execution providers based on hardware availability.

        Priority: TensorRT > CUDA > CPU
        """
        available_providers = onnxruntime.get_available_providers()
        providers = []

        if use_tensorrt and "TensorrtExecutionProvider" in available_providers:
            providers.append(('TensorrtExecutionProvider', {}))

        if use_gpu and "CUDAExecutionProvider" in available_providers:
            providers.append((
                'CUDAExecutionProvider',
                {"cudnn_conv_algo_search": "DEFAULT"}
            ))

        # CPU (always available as fallback)
        providers.append('CPUExecutionProvider')

        return providers

    def run(self, input_data: dict) -> List:
        """Run inference on input data.

        Args:
            input_data: Dictionary mapping input names to numpy arrays

        Returns:
            List of output arrays

        Raises:
            InferenceError: If ONNX Runtime fails
        """
        try:
            return self.session.run(self.output_names, input_feed=input_data)
        except Exception as e:
            raise InferenceError(f"{self.model_path.name}: {e}") from e

    def get_input_feed(self, image_array):
        """Create input feed dictionary.

        Args:
            image_array: Numpy array or list of arrays

        Returns:
            Dictionary mapping input names to arrays
        """
        if len(self.input_names) == 1:
            return {self.input_names[0]: image_array}
        else:
            # For multiple inputs
            return {
                name: image_array[i]
                for i, name in enumerate(self.input_names)
            }

    def __repr__(self):
        return f"ONNXInferenceBase({self.model_path.name})"
