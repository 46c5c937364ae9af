"""
Node Labelling.

Post-training passes that annotate nodes:

- ``KNNLabeller`` gives each node the majority label of the K dataset
  instances nearest to its weight vector.
- ``assign_cluster_labels`` turns integer cluster groups into letters.
"""

from collections import Counter, deque
from string import ascii_uppercase
from typing import Deque, Dict, List, Optional, Sequence
import warnings
import numpy as np

from .dataset import Dataset
from .distance import DistanceMeasure, EuclideanDistance
from .node import Grid, Node


def letter_queue() -> Deque[str]:
    """Ordered pool of cluster letters, 'A' to 'Z'."""
    return deque(ascii_uppercase)


def majority_vote(labels: Sequence[Optional[str]]) -> Optional[str]:
    """
    Most common label, ignoring None.

    Ties go to the label seen first in ``labels``.
    """
    counts = Counter(label for label in labels if label is not None)
    if not counts:
        return None
    # Counter keeps first-seen order and max() keeps the first maximum
    return max(counts, key=counts.get)


class KNNLabeller:
    """
    K-nearest-neighbor labeller.

    Instances are compared with node weights through the same distance
    measure used for training. Distance ties keep dataset order.
    """

    def __init__(
        self,
        dataset: Dataset,
        k: int,
        feature_label: str,
        distance_measure: Optional[DistanceMeasure] = None
    ):
        """
        Args:
            dataset: Training dataset; its label column supplies the votes.
            k: Number of neighbors.
            feature_label: Name of the label column.
            distance_measure: Defaults to Euclidean.

        Raises:
            FeatureNotFoundError: If ``feature_label`` is not a column.
        """
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")

        self.dataset = dataset
        self.feature_label = feature_label
        self.distance_measure = distance_measure or EuclideanDistance()

        self._labels: List[Optional[str]] = [
            None if value is None else str(value)
            for value in dataset.get_values(feature_label)
        ]
        self._vectors = dataset.to_matrix()

        n_instances = len(self._labels)
        if k > n_instances:
            warnings.warn(
                f"k={k} exceeds the {n_instances} dataset instances; using all of them",
                UserWarning,
            )
        self.k = min(k, n_instances)

    def nearest(self, weights: np.ndarray) -> np.ndarray:
        """
        Indices of the k nearest instances to each weight vector.

        Args:
            weights: Array of shape (M, D) or (D,).

        Returns:
            Integer array of shape (M, k), nearest first.
        """
        if self.k == 0:
            return np.empty((np.atleast_2d(weights).shape[0], 0), dtype=np.intp)
        distances = self.distance_measure.pairwise(weights, self._vectors)
        order = np.argsort(distances, axis=1, kind='stable')
        return order[:, :self.k]

    def get_label(self, node: Node) -> Optional[str]:
        """Majority label among the node's k nearest instances."""
        neighbors = self.nearest(node.weights)[0]
        return majority_vote([self._labels[i] for i in neighbors])

    def label_grid(self, grid: Grid) -> None:
        """Label every node of ``grid`` in place."""
        neighbors = self.nearest(grid.flat_weights())
        for flat_index, row in enumerate(neighbors):
            node = grid.node_at_flat(flat_index)
            node.label = majority_vote([self._labels[i] for i in row])


def assign_cluster_labels(
    grid: Grid,
    letters: Optional[Deque[str]] = None
) -> Dict[int, str]:
    """
    Give every node a letter for its cluster group.

    Nodes are visited in row-major order; the first node of each new group
    takes the next letter from the pool and later nodes of that group reuse
    it. When the pool runs out, new groups get an empty string.

    Args:
        grid: Grid whose nodes already carry ``cluster_group``.
        letters: Letter pool; ``letter_queue()`` when None. Consumed.

    Returns:
        Mapping from cluster group to letter.
    """
    if letters is None:
        letters = letter_queue()

    cluster_labels: Dict[int, str] = {}
    for node in grid:
        group = node.cluster_group
        if group not in cluster_labels:
            cluster_labels[group] = letters.popleft() if letters else ''
        node.cluster_label = cluster_labels[group]

    return cluster_labels
