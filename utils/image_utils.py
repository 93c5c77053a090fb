"""
Image utility functions
"""

import cv2
import numpy as np
from pathlib import Path
from typing import Union

from core.exceptions import ImageDecodeError


def load_image(image_path: Union[str, Path]) -> np.ndarray:
    """
    Load an image file as an RGB uint8 array

    Raises:
        ImageDecodeError: If the file is missing or cannot be decoded
    """
    img = cv2.imread(str(image_path), cv2.IMREAD_COLOR)

    if img is None:
        raise ImageDecodeError(f"Cannot load image: {image_path}")

    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
