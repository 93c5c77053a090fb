# core/encoders.py

import gc
import logging
from pathlib import Path
from typing import Union

import numpy as np
import torch
from transformers import AutoModel, AutoProcessor

from core.exceptions import EncodeError
from utils.image_utils import load_image

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "google/siglip2-base-patch16-224"


class SigLIPEncoder:
    """
    SigLIP2 image and text encoder

    Produces one float32 embedding per input. The model is held until
    close() is called; use the encoder as a context manager to release it
    on every exit path.
    """

    def __init__(self,
                 model_name: str = DEFAULT_MODEL_NAME,
                 device: str = None,
                 max_token_length: int = 64,
                 image_size: int = 224):
        self.model_name = model_name
        self.device = device or ('cuda' if torch.cuda.is_available() else 'cpu')
        self.max_token_length = max_token_length
        self.image_size = image_size

        logger.info("Loading %s on %s", model_name, self.device)
        self.model = AutoModel.from_pretrained(model_name)
        self.processor = AutoProcessor.from_pretrained(model_name)
        self.model.to(self.device)
        self.model.eval()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Release the model and any accelerator memory it holds"""
        if self.model is None:
            return
        self.model = None
        self.processor = None
        gc.collect()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
        logger.debug("Released encoder %s", self.model_name)

    def _require_model(self):
        if self.model is None:
            raise EncodeError("Encoder has been closed")

    @staticmethod
    def _to_vector(features) -> np.ndarray:
        # Some model versions wrap projected features in an output object
        if not isinstance(features, torch.Tensor):
            features = features.pooler_output
        return features[0].detach().float().cpu().numpy()

    @torch.no_grad()
    def encode_image(self, image: np.ndarray) -> np.ndarray:
        """Embed an RGB uint8 image array"""
        self._require_model()
        try:
            inputs = self.processor(images=image, return_tensors="pt")
            inputs = {k: v.to(self.device) for k, v in inputs.items()}
            return self._to_vector(self.model.get_image_features(**inputs))
        except (RuntimeError, ValueError, TypeError) as e:
            raise EncodeError(f"Image encoding failed: {e}") from e

    def encode_image_file(self, image_path: Union[str, Path]) -> np.ndarray:
        """Decode an image file and embed it"""
        return self.encode_image(load_image(image_path))

    @torch.no_grad()
    def encode_text(self, text: str) -> np.ndarray:
        """Embed text, padded or truncated to max_token_length tokens"""
        self._require_model()
        try:
            inputs = self.processor(
                text=[text],
                padding="max_length",
                max_length=self.max_token_length,
                truncation=True,
                return_tensors="pt"
            )
            inputs = {k: v.to(self.device) for k, v in inputs.items()}
            return self._to_vector(self.model.get_text_features(**inputs))
        except (RuntimeError, ValueError, TypeError) as e:
            raise EncodeError(f"Text encoding failed: {e}") from e

    def warmup(self):
        """Run one text and one blank image through the model"""
        logger.info("Running warmup...")
        self.encode_text("warmup text")
        blank = np.full((self.image_size, self.image_size, 3), 255, dtype=np.uint8)
        self.encode_image(blank)
        logger.info("Warmup complete")
