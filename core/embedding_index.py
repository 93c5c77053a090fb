# core/embedding_index.py

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from core.exceptions import CorruptIndex, DimensionMismatch, NotFound

logger = logging.getLogger(__name__)


# Longest record name, in UTF-8 bytes, that the index file format accepts
MAX_NAME_BYTES = 4096


@dataclass(frozen=True, eq=False)
class EmbeddingRecord:
    """One corpus entry: image name and its embedding"""
    name: str
    vector: np.ndarray

    def __eq__(self, other) -> bool:
        if not isinstance(other, EmbeddingRecord):
            return NotImplemented
        return self.name == other.name and np.array_equal(self.vector, other.vector)

    def __hash__(self) -> int:
        return hash((self.name, self.vector.tobytes()))


class EmbeddingIndex:
    """
    Ordered in-memory store of image embeddings

    Insertion order is preserved and is also the on-disk record order.
    Duplicate names are allowed; lookups return the first one inserted.
    """

    def __init__(self,
                 records: Iterable[Union[EmbeddingRecord, Tuple[str, np.ndarray]]] = (),
                 dimension: Optional[int] = None):
        self.dimension = dimension
        self._records: List[EmbeddingRecord] = []
        self._by_name: Dict[str, int] = {}
        self._matrix = None

        for record in records:
            if isinstance(record, EmbeddingRecord):
                self.add(record.name, record.vector)
            else:
                self.add(*record)

    def add(self, name: str, vector) -> EmbeddingRecord:
        """
        Append a record

        The first vector added fixes the feature dimension unless one was
        given up front.

        Raises:
            DimensionMismatch: If the vector length differs from the
                               index dimension
            ValueError: If the name is longer than MAX_NAME_BYTES
                        once encoded as UTF-8
        """
        name_bytes = len(name.encode('utf-8'))
        if name_bytes > MAX_NAME_BYTES:
            raise ValueError(
                f"Record name is {name_bytes} bytes, limit is {MAX_NAME_BYTES}"
            )

        vector = np.array(vector, dtype=np.float32).reshape(-1)

        if self.dimension is None:
            self.dimension = vector.shape[0]
        elif vector.shape[0] != self.dimension:
            raise DimensionMismatch(self.dimension, vector.shape[0],
                                    what=f"Embedding for {name!r}")

        vector.setflags(write=False)
        record = EmbeddingRecord(name=name, vector=vector)
        self._by_name.setdefault(name, len(self._records))
        self._records.append(record)
        self._matrix = None
        return record

    def lookup_by_name(self, name: str) -> Optional[np.ndarray]:
        """Return the vector stored under name, or None"""
        position = self._by_name.get(name)
        if position is None:
            return None
        return self._records[position].vector

    def size(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __eq__(self, other) -> bool:
        if not isinstance(other, EmbeddingIndex):
            return NotImplemented
        if len(self) != len(other):
            return False
        return all(a == b for a, b in zip(self._records, other._records))

    def __repr__(self) -> str:
        return f"EmbeddingIndex(size={len(self)}, dimension={self.dimension})"

    @property
    def is_empty(self) -> bool:
        return not self._records

    @property
    def records(self) -> List[EmbeddingRecord]:
        return list(self._records)

    @property
    def names(self) -> List[str]:
        return [record.name for record in self._records]

    def as_matrix(self) -> np.ndarray:
        """
        Dense (N, F) float32 matrix of all vectors in index order

        Built once and cached until the next add. The returned array is
        read-only.
        """
        if self._matrix is None:
            if self._records:
                matrix = np.stack([record.vector for record in self._records])
            else:
                matrix = np.zeros((0, self.dimension or 0), dtype=np.float32)
            matrix.setflags(write=False)
            self._matrix = matrix
        return self._matrix

    def save(self, path: Union[str, Path]):
        """Persist the index atomically"""
        from core.embedding_codec import write_index_file
        write_index_file(self, path)

    @classmethod
    def load(cls, path: Union[str, Path], **limits) -> 'EmbeddingIndex':
        """
        Load an index file

        Raises:
            NotFound: If the file does not exist
            CorruptIndex: If the file is malformed
        """
        from core.embedding_codec import read_index_file
        index = read_index_file(path, **limits)
        logger.info("Loaded %d embeddings from %s", len(index), path)
        return index


def load_or_empty(path: Union[str, Path],
                  on_corrupt: str = "raise",
                  **limits) -> EmbeddingIndex:
    """
    Load an index, falling back to an empty one when the file is missing

    Args:
        path: Index file path
        on_corrupt: "raise" to propagate CorruptIndex, "empty" to log it
                    and return an empty index instead
    """
    if on_corrupt not in ("raise", "empty"):
        raise ValueError(f"on_corrupt must be 'raise' or 'empty', got {on_corrupt!r}")

    try:
        return EmbeddingIndex.load(path, **limits)
    except NotFound:
        logger.warning(
            "Embedding index not found at %s; searching an empty index. "
            "Run the index command first.", path
        )
    except CorruptIndex as e:
        if on_corrupt == "raise":
            raise
        logger.error("Failed to load embedding index %s: %s", path, e)

    return EmbeddingIndex()
