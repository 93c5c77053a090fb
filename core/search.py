# core/search.py

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from core.embedding_index import EmbeddingIndex
from core.similarity import cosine_similarity, score_batch
from utils.logging_config import PerformanceLogger

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


@dataclass
class SimilarityResult:
    """Container for a single ranked match"""
    name: str
    score: float


@dataclass
class SearchResponse:
    """Ranked results of one query"""
    results: List[SimilarityResult] = field(default_factory=list)
    index_empty: bool = False
    corpus_size: int = 0
    elapsed_ms: float = 0.0

    def __len__(self):
        return len(self.results)

    def __iter__(self):
        return iter(self.results)


def rank_results(names: Sequence[str], scores: np.ndarray) -> List[SimilarityResult]:
    """
    Pair names with scores and sort by score descending

    Equal scores keep their original order.
    """
    order = np.argsort(-np.asarray(scores, dtype=np.float32), kind='stable')
    return [SimilarityResult(name=names[i], score=float(scores[i])) for i in order]


def select_top_k(results: List[SimilarityResult], k: int) -> List[SimilarityResult]:
    """Return the first k ranked results (all of them if fewer than k)"""
    if k < 0:
        raise ValueError(f"top_k must be non-negative, got {k}")
    return results[:k]


class SearchOrchestrator:
    """
    Text-to-image, image-to-image and text-to-text search over an index

    The orchestrator holds a reference to an immutable index. Rebuilding
    produces a new index that is installed with swap_index; a query keeps
    the index it started with.
    """

    def __init__(self,
                 encoder,
                 index: Optional[EmbeddingIndex] = None,
                 top_k: int = DEFAULT_TOP_K,
                 perf_logger: Optional[PerformanceLogger] = None):
        if top_k < 0:
            raise ValueError(f"top_k must be non-negative, got {top_k}")
        self.encoder = encoder
        self._index = index if index is not None else EmbeddingIndex()
        self.top_k = top_k
        self.perf_logger = perf_logger or PerformanceLogger()

    @property
    def index(self) -> EmbeddingIndex:
        return self._index

    def swap_index(self, new_index: EmbeddingIndex) -> EmbeddingIndex:
        """Install a freshly built index and return the previous one"""
        old_index, self._index = self._index, new_index
        logger.info("Swapped embedding index (%d -> %d records)",
                    len(old_index), len(new_index))
        return old_index

    def search_by_text(self, text: str, top_k: Optional[int] = None) -> SearchResponse:
        """Find images matching a text query"""
        logger.debug("Searching for: %r", text)
        return self._search(lambda: self.encoder.encode_text(text), top_k, "text_search")

    def search_by_image(self,
                        image: Union[np.ndarray, str, Path],
                        top_k: Optional[int] = None) -> SearchResponse:
        """Find images similar to an RGB image array or image file"""
        if isinstance(image, (str, Path)):
            encode = lambda: self.encoder.encode_image_file(image)
        else:
            encode = lambda: self.encoder.encode_image(image)
        return self._search(encode, top_k, "image_search")

    def search_by_embedding(self, embedding, top_k: Optional[int] = None) -> SearchResponse:
        """Rank the index against a precomputed query embedding"""
        return self._search(lambda: embedding, top_k, "embedding_search")

    def text_similarity(self, text_a: str, text_b: str) -> float:
        """Cosine similarity between two texts"""
        embedding_a = self.encoder.encode_text(text_a)
        embedding_b = self.encoder.encode_text(text_b)
        return cosine_similarity(embedding_a, embedding_b)

    def _search(self,
                encode_query: Callable[[], np.ndarray],
                top_k: Optional[int],
                operation: str) -> SearchResponse:
        k = self.top_k if top_k is None else top_k
        if k < 0:
            raise ValueError(f"top_k must be non-negative, got {k}")

        index = self._index
        if index.is_empty:
            logger.warning("Embedding index is empty. Cannot search.")
            return SearchResponse(index_empty=True)

        start = time.perf_counter()

        query = encode_query()
        scores = score_batch(query, index.as_matrix(), dimension=index.dimension)
        ranked = rank_results(index.names, scores)
        results = select_top_k(ranked, k)

        elapsed = time.perf_counter() - start
        self.perf_logger.log_metric(operation, elapsed, corpus_size=len(index))
        logger.info("%s over %d images took %.1f ms",
                    operation, len(index), elapsed * 1000)
        for result in results:
            logger.debug("Result: %s, Score: %.4f", result.name, result.score)

        return SearchResponse(
            results=results,
            corpus_size=len(index),
            elapsed_ms=elapsed * 1000
        )
