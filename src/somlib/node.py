"""
Grid and Node.

The grid stores every node's state in contiguous numpy arrays indexed by
``(x, y)``: one ``(width, height, dim)`` weight array and parallel
``(width, height)`` arrays for the hit count, label and cluster fields.
A ``Node`` is a lightweight view onto one cell; reading or writing its
attributes reads or writes the grid arrays.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple
import numpy as np

from .distance import DistanceMeasure, EuclideanDistance
from .exceptions import InvalidStateError


@dataclass(frozen=True)
class Coordinate:
    x: int
    y: int

    def as_tuple(self) -> Tuple[int, int]:
        return (self.x, self.y)


class Node:
    """One prototype on the grid."""

    __slots__ = ('_grid', '_x', '_y')

    def __init__(self, grid: 'Grid', x: int, y: int):
        self._grid = grid
        self._x = x
        self._y = y

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self._x, self._y)

    @property
    def weights(self) -> np.ndarray:
        """Weight vector; a view, so in-place edits change the grid."""
        return self._grid.weights[self._x, self._y]

    @weights.setter
    def weights(self, value: np.ndarray) -> None:
        value = np.asarray(value, dtype=np.float64)
        if value.shape != (self._grid.dim,):
            raise InvalidStateError(
                f"Weight vector must have length {self._grid.dim}, got {value.shape}"
            )
        self._grid.weights[self._x, self._y] = value

    @property
    def label(self) -> Optional[str]:
        return self._grid.labels[self._x, self._y]

    @label.setter
    def label(self, value: Optional[str]) -> None:
        self._grid.labels[self._x, self._y] = value

    @property
    def cluster_group(self) -> int:
        return int(self._grid.cluster_groups[self._x, self._y])

    @cluster_group.setter
    def cluster_group(self, value: int) -> None:
        self._grid.cluster_groups[self._x, self._y] = value

    @property
    def cluster_label(self) -> Optional[str]:
        return self._grid.cluster_labels[self._x, self._y]

    @cluster_label.setter
    def cluster_label(self, value: Optional[str]) -> None:
        self._grid.cluster_labels[self._x, self._y] = value

    @property
    def count(self) -> int:
        return int(self._grid.counts[self._x, self._y])

    @count.setter
    def count(self, value: int) -> None:
        self._grid.counts[self._x, self._y] = value

    def get_distance(self, vector: np.ndarray) -> float:
        """
        Distance between this node's weights and an input vector.

        Raises:
            InvalidStateError: If the lengths differ.
        """
        return self._grid.distance_measure(self.weights, vector)

    def get_grid_distance(self, other: 'Node') -> float:
        """Euclidean distance between the two nodes' grid coordinates."""
        return float(np.hypot(self._x - other._x, self._y - other._y))

    def increment_count(self) -> None:
        self._grid.counts[self._x, self._y] += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weights': [float(w) for w in self.weights],
            'coordinate': {'x': self._x, 'y': self._y},
            'label': self.label,
            'cluster_group': self.cluster_group,
            'cluster_label': self.cluster_label,
            'count': self.count,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self._grid is other._grid and (self._x, self._y) == (other._x, other._y)

    def __hash__(self) -> int:
        return hash((id(self._grid), self._x, self._y))

    def __repr__(self) -> str:
        return f"Node(x={self._x}, y={self._y}, label={self.label!r}, count={self.count})"


class Grid:
    """
    Width x height nodes with weight vectors of length ``dim``.

    Nodes are addressed as ``grid[x, y]`` and iterate in row-major order
    (``x`` outer, ``y`` inner).
    """

    def __init__(
        self,
        width: int,
        height: int,
        dim: int,
        distance_measure: Optional[DistanceMeasure] = None,
        rng: Optional[np.random.Generator] = None,
        weights: Optional[np.ndarray] = None
    ):
        """
        Args:
            width: Number of columns (x).
            height: Number of rows (y).
            dim: Weight vector length.
            distance_measure: Measure used by ``Node.get_distance``.
            rng: Random generator for the initial weights.
            weights: Explicit initial weights of shape (width, height, dim);
                uniform random in [0, 1) when None.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid size must be positive, got {width}x{height}")

        self.width = width
        self.height = height
        self.dim = dim
        self.distance_measure = distance_measure or EuclideanDistance()

        if weights is None:
            if rng is None:
                rng = np.random.default_rng()
            self.weights = rng.random((width, height, dim))
        else:
            weights = np.array(weights, dtype=np.float64)
            if weights.shape != (width, height, dim):
                raise ValueError(
                    f"Weights shape {weights.shape} != {(width, height, dim)}"
                )
            self.weights = weights

        self.counts = np.zeros((width, height), dtype=np.int64)
        self.labels = np.full((width, height), None, dtype=object)
        self.cluster_groups = np.zeros((width, height), dtype=np.int64)
        self.cluster_labels = np.full((width, height), None, dtype=object)

        x_coords, y_coords = np.meshgrid(
            np.arange(width), np.arange(height), indexing='ij'
        )
        self.coordinates = np.stack([x_coords, y_coords], axis=-1).astype(np.float64)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def __len__(self) -> int:
        return self.width * self.height

    def __getitem__(self, index: Tuple[int, int]) -> Node:
        x, y = index
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Node ({x}, {y}) outside {self.width}x{self.height} grid")
        return Node(self, x, y)

    def __iter__(self) -> Iterator[Node]:
        for x in range(self.width):
            for y in range(self.height):
                yield Node(self, x, y)

    def flat_weights(self) -> np.ndarray:
        """Weights reshaped to (width * height, dim), row-major."""
        return self.weights.reshape(-1, self.dim)

    def node_at_flat(self, index: int) -> Node:
        x, y = divmod(int(index), self.height)
        return Node(self, x, y)

    def distances_to(self, vector: np.ndarray) -> np.ndarray:
        """Distance from every node to ``vector``, shape (width, height)."""
        return self.distance_measure.pairwise(self.flat_weights(), vector)[:, 0].reshape(
            self.width, self.height
        )

    def grid_distances_from(self, node: Node) -> np.ndarray:
        """Grid-space Euclidean distance from ``node`` to every node."""
        delta = self.coordinates - np.array(node.coordinate.as_tuple(), dtype=np.float64)
        return np.sqrt(np.sum(delta ** 2, axis=-1))
