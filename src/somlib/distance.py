"""
Distance Measures for somlib.

A distance measure compares a node's weight vector with an input vector.
Measures compute pairwise distance matrices through
``scipy.spatial.distance.cdist`` so that a single comparison and a full
grid scan use the same arithmetic.
"""

from abc import ABC, abstractmethod
import numpy as np
from scipy.spatial.distance import cdist

from .exceptions import InvalidStateError


def _as_rows(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        return x[np.newaxis, :]
    return x


class DistanceMeasure(ABC):
    """Distance between weight vectors and input vectors."""

    name = 'custom'

    @abstractmethod
    def _pairwise(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Distances between every row of ``a`` and every row of ``b``."""

    def pairwise(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """
        Compute the distance matrix between two sets of vectors.

        Args:
            a: Array of shape (M, D) or (D,).
            b: Array of shape (N, D) or (D,).

        Returns:
            Array of shape (M, N).

        Raises:
            InvalidStateError: If the vector lengths differ.
        """
        a = _as_rows(a)
        b = _as_rows(b)
        if a.shape[1] != b.shape[1]:
            raise InvalidStateError(
                f"Vector length mismatch: {a.shape[1]} != {b.shape[1]}"
            )
        return self._pairwise(a, b)

    def __call__(self, a: np.ndarray, b: np.ndarray) -> float:
        """Distance between two single vectors."""
        return float(self.pairwise(a, b)[0, 0])

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class EuclideanDistance(DistanceMeasure):
    name = 'euclidean'

    def _pairwise(self, a, b):
        return cdist(a, b, metric='euclidean')


class ManhattanDistance(DistanceMeasure):
    name = 'manhattan'

    def _pairwise(self, a, b):
        return cdist(a, b, metric='cityblock')


class ChebyshevDistance(DistanceMeasure):
    name = 'chebyshev'

    def _pairwise(self, a, b):
        return cdist(a, b, metric='chebyshev')


class CosineDistance(DistanceMeasure):
    """
    One minus cosine similarity.

    Zero vectors have no direction; their distance to anything is 1.
    """

    name = 'cosine'

    def _pairwise(self, a, b):
        norm_a = np.linalg.norm(a, axis=1)
        norm_b = np.linalg.norm(b, axis=1)
        denom = np.outer(norm_a, norm_b)
        dots = a @ b.T
        with np.errstate(divide='ignore', invalid='ignore'):
            similarity = np.where(denom > 0, dots / denom, 0.0)
        return 1.0 - similarity


DISTANCE_MEASURES = {
    EuclideanDistance.name: EuclideanDistance,
    ManhattanDistance.name: ManhattanDistance,
    ChebyshevDistance.name: ChebyshevDistance,
    CosineDistance.name: CosineDistance,
}


def get_distance_measure(name: str) -> DistanceMeasure:
    """
    Look up a distance measure by name.

    Args:
        name: One of 'euclidean', 'manhattan', 'chebyshev', 'cosine'.
    """
    try:
        return DISTANCE_MEASURES[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown distance measure: {name}. "
            f"Choose from {sorted(DISTANCE_MEASURES)}"
        ) from None
