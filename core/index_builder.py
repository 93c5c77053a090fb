# core/index_builder.py

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from tqdm import tqdm

from core.embedding_index import EmbeddingIndex
from core.exceptions import EncodeError, NotFound, PersistenceError
from utils.file_utils import DEFAULT_IMAGE_EXTENSIONS, get_image_files

logger = logging.getLogger(__name__)

ImageEncodeFunc = Callable[[Path], np.ndarray]


class IndexBuilder:
    """
    Builds a fresh embedding index from a directory of images

    A build never touches a live index: it returns a new one, which the
    caller can then swap in.
    """

    def __init__(self,
                 encode_image: ImageEncodeFunc,
                 extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
                 recursive: bool = False,
                 sort_files: bool = True,
                 dimension: Optional[int] = None,
                 show_progress: bool = True):
        self.encode_image = encode_image
        self.extensions = tuple(extensions)
        self.recursive = recursive
        self.sort_files = sort_files
        self.dimension = dimension
        self.show_progress = show_progress
        self.skipped: List[Tuple[Path, str]] = []

    def scan_directory(self, image_dir: Union[str, Path]) -> List[Path]:
        """Scan directory for image files"""
        image_dir = Path(image_dir)
        if not image_dir.is_dir():
            raise NotFound(f"Images directory not found: {image_dir}")

        image_files = get_image_files(image_dir, self.extensions,
                                      recursive=self.recursive,
                                      sort=self.sort_files)
        logger.info("Found %d images in %s", len(image_files), image_dir)
        return image_files

    def build(self, image_paths: Sequence[Union[str, Path]]) -> EmbeddingIndex:
        """
        Encode images in order into a new index

        Images that fail to decode or encode are skipped with a warning.

        Raises:
            DimensionMismatch: If the encoder output length changes
        """
        index = EmbeddingIndex(dimension=self.dimension)
        self.skipped = []

        for path in tqdm(image_paths, desc="Generating embeddings",
                         disable=not self.show_progress):
            path = Path(path)
            try:
                embedding = self.encode_image(path)
            except EncodeError as e:
                logger.warning("Skipping %s: %s", path.name, e)
                self.skipped.append((path, str(e)))
                continue

            index.add(path.name, embedding)

        logger.info("Generated %d embeddings (%d skipped)",
                    len(index), len(self.skipped))
        return index

    def persist(self, index: EmbeddingIndex, index_path: Union[str, Path]) -> bool:
        """Save the index; a write failure is logged and reported as False"""
        try:
            index.save(index_path)
        except PersistenceError as e:
            logger.error("Failed to save embedding index: %s", e)
            return False
        return True

    def build_index(self,
                    image_dir: Union[str, Path],
                    index_path: Optional[Union[str, Path]] = None) -> EmbeddingIndex:
        """Scan image_dir, encode every image and optionally persist"""
        image_paths = self.scan_directory(image_dir)
        index = self.build(image_paths)

        if index_path is not None:
            self.persist(index, index_path)

        return index
