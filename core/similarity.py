# core/similarity.py

import numpy as np
from typing import Optional, Sequence, Union

from core.exceptions import DimensionMismatch

EPSILON = np.float32(1e-8)


def l2_normalize(vectors: np.ndarray, eps: np.float32 = EPSILON) -> np.ndarray:
    """L2-normalize along the last axis, guarding zero vectors with eps"""
    norms = np.sqrt(np.sum(vectors * vectors, axis=-1, keepdims=True))
    return vectors / (norms + eps)


def _as_corpus_matrix(corpus, dimension: int) -> np.ndarray:
    """Pack the corpus into one contiguous (N, F) float32 batch"""
    if isinstance(corpus, np.ndarray):
        # An empty batch has no rows to check, whatever its width
        if corpus.ndim in (1, 2) and corpus.shape[0] == 0:
            return np.zeros((0, dimension), dtype=np.float32)
        if corpus.ndim != 2:
            raise DimensionMismatch(2, corpus.ndim, what="Corpus array rank")
        if corpus.shape[1] != dimension:
            raise DimensionMismatch(dimension, corpus.shape[1], what="Corpus vector")
        return corpus.astype(np.float32, copy=False)

    if len(corpus) == 0:
        return np.zeros((0, dimension), dtype=np.float32)

    matrix = np.empty((len(corpus), dimension), dtype=np.float32)
    for i, vector in enumerate(corpus):
        vector = np.asarray(vector, dtype=np.float32).reshape(-1)
        if vector.shape[0] != dimension:
            raise DimensionMismatch(dimension, vector.shape[0],
                                    what=f"Corpus vector {i}")
        matrix[i] = vector
    return matrix


def score_batch(query,
                corpus: Union[np.ndarray, Sequence],
                dimension: Optional[int] = None) -> np.ndarray:
    """
    Cosine similarity of one query against a batch of corpus vectors

    Both sides are normalized before the dot product:
        score_i = sum((Q / (|Q| + eps)) * (V_i / (|V_i| + eps)))

    Args:
        query: Query embedding of length F
        corpus: (N, F) array or sequence of N vectors of length F
        dimension: Expected F; defaults to the query length

    Returns:
        float32 array of N scores, positionally aligned with corpus

    Raises:
        DimensionMismatch: If the query or any corpus vector has the
                           wrong length
    """
    query = np.asarray(query, dtype=np.float32)
    # Encoders return a (1, F) batch for a single input
    if query.ndim == 2 and query.shape[0] == 1:
        query = query[0]
    if query.ndim != 1:
        raise DimensionMismatch(1, query.ndim, what="Query rank")

    if dimension is None:
        dimension = query.shape[0]
    elif query.shape[0] != dimension:
        raise DimensionMismatch(dimension, query.shape[0], what="Query embedding")

    matrix = _as_corpus_matrix(corpus, dimension)
    if matrix.shape[0] == 0:
        return np.zeros(0, dtype=np.float32)

    normalized_query = l2_normalize(query)
    normalized_corpus = l2_normalize(matrix)

    scores = np.sum(normalized_corpus * normalized_query, axis=1)
    return scores.astype(np.float32, copy=False)


def cosine_similarity(a, b) -> float:
    """Cosine similarity between two single vectors"""
    return float(score_batch(a, [b])[0])
