"""
Self-Organizing Map (SOM) Core Logic.

The map is a width x height grid of nodes. Training presents every dataset
instance once per epoch, in a freshly shuffled order, finds the best
matching unit (BMU) and pulls every node within the current neighborhood
radius of the BMU toward the instance. Learning rate and radius decay over
the global iteration count through pluggable strategies.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import json
import time
import uuid
import warnings
import numpy as np

from .config import SOMConfig
from .dataset import Dataset
from .decay import DecayStrategy, make_decay
from .distance import DistanceMeasure, EuclideanDistance, get_distance_measure
from .exceptions import ConfigurationError, InvalidStateError, TrainingCancelledError
from .kernels import GaussianKernel, NeighborhoodKernel
from .labelling import KNNLabeller, assign_cluster_labels
from .node import Grid, Node
from .reader import Reader

ProgressCallback = Callable[[int, int], None]
StopCallback = Callable[[], bool]


class SOMState(str, Enum):
    """Lifecycle of a map."""
    UNCONFIGURED = "unconfigured"
    INITIALIZED = "initialized"
    TRAINING = "training"
    TRAINED = "trained"
    LABELED = "labeled"


class SelfOrganizingMap:
    """
    Self-Organizing Map trained on a Dataset.

    Example:
        config = SOMConfig(width=10, height=10, epoch=20,
                           initial_learning_rate=0.5, final_learning_rate=0.01,
                           feature_label='species')
        som = SelfOrganizingMap(config)
        som.get_data(CSVReader('iris.csv', labels=['species']))
        som.train()
        som.label_nodes()
    """

    def __init__(
        self,
        config: SOMConfig,
        distance_measure: Optional[DistanceMeasure] = None,
        learning_rate: Optional[DecayStrategy] = None,
        neighborhood_radius: Optional[DecayStrategy] = None,
        neighborhood_kernel: Optional[NeighborhoodKernel] = None
    ):
        """
        Initialize the SOM.

        Args:
            config: Map size and hyperparameters.
            distance_measure: Node-to-instance distance. Defaults to Euclidean.
            learning_rate: Learning rate schedule. Defaults to a power series
                from the configured initial to final rate.
            neighborhood_radius: Radius schedule. Defaults to a power series
                from the configured initial to final radius.
            neighborhood_kernel: Kernel for the weighted update path
                (``config.use_kernel``). Defaults to Gaussian.
        """
        self.config = config.validate()

        self.width = config.width
        self.height = config.height
        self.epoch = config.epoch
        self.global_epoch = config.resolved_global_epoch
        self.local_epoch = config.local_epoch
        self.k = config.k
        self.feature_label = config.feature_label
        self.use_kernel = config.use_kernel

        self.initial_learning_rate = config.initial_learning_rate
        self.final_learning_rate = config.resolved_final_learning_rate
        self.initial_radius = config.resolved_initial_radius
        self.final_radius = config.resolved_final_radius

        self._distance_measure = distance_measure or EuclideanDistance()
        self._learning_rate = learning_rate or make_decay(
            'power', self.initial_learning_rate, self.final_learning_rate
        )
        self._neighborhood_radius = neighborhood_radius or make_decay(
            'power', self.initial_radius, self.final_radius
        )
        self._neighborhood_kernel = neighborhood_kernel or GaussianKernel()

        self._rng = np.random.default_rng(config.random_seed)

        self.map_id: Optional[uuid.UUID] = None
        self.grid: Optional[Grid] = None
        self.dataset: Optional[Dataset] = None
        self.state = SOMState.UNCONFIGURED

        self.total_iteration = 0
        self.total_global_iteration = 0

        # Last values used by the update step
        self.current_learning_rate = self.initial_learning_rate
        self.current_radius = self.initial_radius

        self.training_history: List[Dict[str, float]] = []
        self._map_fresh = False

    # ------------------------------------------------------------------
    # Data and initialization
    # ------------------------------------------------------------------

    def get_data(self, reader: Reader) -> Dataset:
        """
        Load the training data from a reader.

        Returns:
            The attached dataset.
        """
        return self.attach_dataset(reader.read())

    def attach_dataset(self, dataset: Dataset) -> Dataset:
        """Attach a dataset and compute the iteration counts."""
        self.dataset = dataset
        self.total_iteration = len(dataset) * self.epoch
        self.total_global_iteration = len(dataset) * self.global_epoch
        self.grid = None
        self._map_fresh = False
        self.state = SOMState.INITIALIZED
        return dataset

    def _require_dataset(self) -> Dataset:
        if self.dataset is None:
            raise InvalidStateError("No dataset attached. Call get_data() first.")
        return self.dataset

    def _require_grid(self) -> Grid:
        if self.grid is None:
            raise InvalidStateError("Map not initialized. Call initialize_map() first.")
        return self.grid

    def initialize_map(self) -> Grid:
        """
        Allocate the grid with uniform random weights in [0, 1).

        Every call assigns a new ``map_id``.
        """
        dataset = self._require_dataset()

        self.map_id = uuid.uuid4()
        self.grid = Grid(
            self.width,
            self.height,
            dataset.weight_vector_count,
            distance_measure=self._distance_measure,
            rng=self._rng,
        )
        self.training_history = []
        self._map_fresh = True
        self.state = SOMState.INITIALIZED
        return self.grid

    @property
    def weight_count(self) -> int:
        return self._require_grid().dim

    @property
    def is_trained(self) -> bool:
        return self.state in (SOMState.TRAINED, SOMState.LABELED)

    def node(self, x: int, y: int) -> Node:
        return self._require_grid()[x, y]

    def nodes(self) -> List[Node]:
        """All nodes in row-major order."""
        return list(self._require_grid())

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self,
        progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCallback] = None,
        timeout: Optional[float] = None,
        verbose: bool = False,
        report_every: int = 100
    ) -> 'SelfOrganizingMap':
        """
        Train the SOM by adjusting the weights of the nodes.

        Steps, for every epoch:
            1. Shuffle the instance order.
            2. For each instance, find the best matching unit.
            3. Move every node within the neighborhood radius of the BMU
               toward the instance.

        The map is (re)initialized first unless ``initialize_map()`` was
        called since the last training run.

        Args:
            progress: Called as ``progress(iteration, total_iteration)``
                after each instance.
            should_stop: Polled before each instance; returning True aborts.
            timeout: Seconds after which training aborts.
            verbose: Print progress every ``report_every`` iterations.
            report_every: Interval for progress lines and training history.

        Returns:
            self

        Raises:
            InvalidStateError: If no dataset is attached, the dataset is
                empty, or its dimensions no longer match the grid.
            TrainingCancelledError: If stopped by ``should_stop`` or
                ``timeout``. The grid is left partially trained.
        """
        dataset = self._require_dataset()
        if len(dataset) == 0:
            raise InvalidStateError("Cannot train on an empty dataset")

        if not self._map_fresh or self.grid is None:
            self.initialize_map()
        self._map_fresh = False

        grid = self.grid
        self.total_iteration = len(dataset) * self.epoch
        self.total_global_iteration = len(dataset) * self.global_epoch
        deadline = time.monotonic() + timeout if timeout is not None else None

        if verbose:
            print(f"Training SOM {self.width}x{self.height}...")
            print(f"  Instances: {len(dataset)}, dimensions: {grid.dim}")
            print(f"  Epochs: {self.epoch}, iterations: {self.total_iteration}")

        self.state = SOMState.TRAINING
        t = 0
        try:
            for epoch in range(self.epoch):
                # Randomize the order of the instances every epoch
                dataset.shuffle(self._rng)
                vectors = dataset.to_matrix()
                if epoch == 0:
                    self._check_value_range(vectors)

                for vector in vectors:
                    if should_stop is not None and should_stop():
                        raise TrainingCancelledError(t, self.total_iteration)
                    if deadline is not None and time.monotonic() > deadline:
                        raise TrainingCancelledError(t, self.total_iteration, 'timed out')

                    winning_node = self.find_best_matching_unit(vector)
                    winning_node.increment_count()
                    self.update_neighborhood(winning_node, vector, t)

                    if t % report_every == 0:
                        self.training_history.append({
                            'iteration': t,
                            'epoch': epoch,
                            'learning_rate': self.current_learning_rate,
                            'radius': self.current_radius,
                        })
                        if verbose:
                            print(f"Iteration {t}/{self.total_iteration}: "
                                  f"LR={self.current_learning_rate:.4f}, "
                                  f"radius={self.current_radius:.4f}")

                    if progress is not None:
                        progress(t, self.total_iteration)

                    t += 1
        except BaseException:
            self.state = SOMState.INITIALIZED
            raise

        self.state = SOMState.TRAINED

        if verbose:
            print(f"  QE: {self.quantization_error():.4f}")

        return self

    def _check_value_range(self, vectors: np.ndarray) -> None:
        if vectors.size and (vectors.min() < 0.0 or vectors.max() > 1.0):
            warnings.warn(
                "Training data lies outside [0, 1] but node weights are "
                "initialized in [0, 1); consider scaling the features.",
                UserWarning,
                stacklevel=3,
            )

    def find_best_matching_unit(self, vector: np.ndarray) -> Node:
        """
        Find the node whose weights are closest to ``vector``.

        Nodes are scanned in row-major order; on equal distances the
        earlier node wins.

        Raises:
            InvalidStateError: On a vector length mismatch.
        """
        distances = self._require_grid().distances_to(vector)
        return self.grid.node_at_flat(np.argmin(distances.ravel()))

    def update_neighborhood(
        self,
        winning_node: Node,
        vector: np.ndarray,
        iteration: int
    ) -> None:
        """
        Pull the neighborhood of the winning node toward ``vector``.

        Every node whose grid distance to the BMU is at most the current
        radius moves by ``lr * (vector - weights)``. With ``use_kernel`` the
        step is additionally scaled by the neighborhood kernel.
        """
        grid = self._require_grid()
        vector = np.asarray(vector, dtype=np.float64)
        if vector.shape != (grid.dim,):
            raise InvalidStateError(
                f"Vector length {vector.shape[-1] if vector.ndim else 0} "
                f"does not match weight length {grid.dim}"
            )

        learning_rate = self.get_learning_rate(iteration)
        radius = self.get_neighborhood_radius(iteration)
        self.current_learning_rate = learning_rate
        self.current_radius = radius

        grid_distance = grid.grid_distances_from(winning_node)
        within = grid_distance <= radius

        if self.use_kernel:
            influence = learning_rate * np.asarray(
                self.get_neighborhood_function(grid_distance[within], radius)
            )
            grid.weights[within] += influence[:, np.newaxis] * (vector - grid.weights[within])
        else:
            grid.weights[within] += learning_rate * (vector - grid.weights[within])

    def adjust_weights(
        self,
        node: Node,
        vector: np.ndarray,
        learning_rate: float
    ) -> np.ndarray:
        """Move one node's weights toward ``vector`` in place."""
        weights = node.weights
        weights += learning_rate * (np.asarray(vector, dtype=np.float64) - weights)
        return weights

    def get_learning_rate(self, iteration: int) -> float:
        return self._learning_rate(iteration, self.total_global_iteration)

    def get_neighborhood_radius(self, iteration: int) -> float:
        return self._neighborhood_radius(iteration, self.total_global_iteration)

    def get_neighborhood_function(
        self,
        distance: Union[float, np.ndarray],
        radius: float
    ) -> Union[float, np.ndarray]:
        return self._neighborhood_kernel(distance, radius)

    # ------------------------------------------------------------------
    # Labelling
    # ------------------------------------------------------------------

    def label_nodes(self) -> None:
        """
        Give each node the majority label of its K nearest instances.

        Does nothing when no ``feature_label`` is configured.

        Raises:
            InvalidStateError: If the map is not trained or has no dataset.
            FeatureNotFoundError: If the label column does not exist.
        """
        if not self.feature_label:
            return
        if not self.is_trained:
            raise InvalidStateError("Train the map before labelling nodes.")

        labeller = KNNLabeller(
            self._require_dataset(),
            self.k,
            self.feature_label,
            distance_measure=self._distance_measure,
        )
        labeller.label_grid(self.grid)
        self.state = SOMState.LABELED

    def assign_cluster_label(self) -> Dict[int, str]:
        """
        Turn each node's cluster group into a letter.

        Returns:
            Mapping from cluster group to letter.
        """
        if not self.is_trained:
            raise InvalidStateError("Train the map before assigning cluster labels.")
        return assign_cluster_labels(self.grid)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _data_or_dataset(self, data: Optional[np.ndarray]) -> np.ndarray:
        if data is None:
            return self._require_dataset().to_matrix()
        return np.atleast_2d(np.asarray(data, dtype=np.float64))

    def predict(self, vector: np.ndarray) -> Tuple[int, int]:
        """Grid coordinate of the BMU for ``vector``."""
        return self.find_best_matching_unit(vector).coordinate.as_tuple()

    def predict_batch(self, data: np.ndarray) -> np.ndarray:
        """BMU coordinates for each row, shape (N, 2)."""
        grid = self._require_grid()
        distances = self._distance_measure.pairwise(grid.flat_weights(), data)
        flat = np.argmin(distances, axis=0)
        return np.stack(np.divmod(flat, grid.height), axis=1)

    def quantization_error(self, data: Optional[np.ndarray] = None) -> float:
        """Mean distance between each vector and its BMU."""
        grid = self._require_grid()
        data = self._data_or_dataset(data)
        if len(data) == 0:
            return 0.0
        distances = self._distance_measure.pairwise(grid.flat_weights(), data)
        return float(np.mean(np.min(distances, axis=0)))

    def topographic_error(self, data: Optional[np.ndarray] = None) -> float:
        """
        Fraction of vectors whose first and second BMUs are not adjacent.

        Adjacent means within one step, diagonals included.
        """
        grid = self._require_grid()
        data = self._data_or_dataset(data)
        if len(data) == 0 or len(grid) < 2:
            return 0.0
        distances = self._distance_measure.pairwise(grid.flat_weights(), data)
        order = np.argsort(distances, axis=0, kind='stable')
        first = np.stack(np.divmod(order[0], grid.height), axis=1)
        second = np.stack(np.divmod(order[1], grid.height), axis=1)
        gap = np.max(np.abs(first - second), axis=1)
        return float(np.mean(gap > 1))

    def get_umatrix(self) -> np.ndarray:
        """
        Calculate the U-matrix (unified distance matrix).

        Returns:
            (width, height) array with each node's mean distance to its
            eight grid neighbors.
        """
        grid = self._require_grid()
        umatrix = np.zeros(grid.shape)

        for node in grid:
            x, y = node.coordinate.as_tuple()
            distances = []
            for dx in (-1, 0, 1):
                for dy in (-1, 0, 1):
                    if dx == 0 and dy == 0:
                        continue
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < grid.width and 0 <= ny < grid.height:
                        distances.append(node.get_distance(grid.weights[nx, ny]))
            umatrix[x, y] = np.mean(distances) if distances else 0.0

        return umatrix

    def get_hit_map(self, data: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Count of vectors mapped to each node.

        With no data, returns the hit counts accumulated during training.
        """
        grid = self._require_grid()
        if data is None:
            return grid.counts.copy()
        hits = np.zeros(grid.shape, dtype=np.int64)
        for x, y in self.predict_batch(data):
            hits[x, y] += 1
        return hits

    def get_component_planes(self) -> np.ndarray:
        """Weights per dimension, shape (dim, width, height)."""
        return np.moveaxis(self._require_grid().weights, -1, 0).copy()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """
        The trained model as plain Python data.

        Weights are Python floats, so ``json`` keeps full double precision.
        """
        grid = self._require_grid()
        return {
            'map_id': str(self.map_id),
            'state': self.state.value,
            'width': self.width,
            'height': self.height,
            'epoch': self.epoch,
            'global_epoch': self.global_epoch,
            'local_epoch': self.local_epoch,
            'k': self.k,
            'feature_label': self.feature_label,
            'initial_learning_rate': self.initial_learning_rate,
            'final_learning_rate': self.final_learning_rate,
            'initial_radius': self.initial_radius,
            'final_radius': self.final_radius,
            'use_kernel': self.use_kernel,
            'distance_measure': self._distance_measure.name,
            'total_iteration': self.total_iteration,
            'total_global_iteration': self.total_global_iteration,
            'nodes': [node.to_dict() for node in grid],
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        distance_measure: Optional[DistanceMeasure] = None
    ) -> 'SelfOrganizingMap':
        """
        Rebuild a map from ``to_dict`` output.

        The result has no dataset attached; diagnostics that need data
        must be given it explicitly.

        Args:
            data: Output of ``to_dict``.
            distance_measure: Measure to restore the map with. Required when
                the map was trained with a measure that is not built in.

        Raises:
            ConfigurationError: If the stored measure is not built in and
                none is given.
        """
        config = SOMConfig(
            width=data['width'],
            height=data['height'],
            initial_learning_rate=data['initial_learning_rate'],
            final_learning_rate=data['final_learning_rate'],
            initial_radius=data['initial_radius'],
            final_radius=data['final_radius'],
            epoch=data['epoch'],
            global_epoch=data['global_epoch'],
            local_epoch=data.get('local_epoch'),
            k=data['k'],
            feature_label=data.get('feature_label'),
            use_kernel=data.get('use_kernel', False),
        )
        if distance_measure is None:
            distance_name = data.get('distance_measure', 'euclidean')
            try:
                distance_measure = get_distance_measure(distance_name)
            except ValueError:
                raise ConfigurationError(
                    f"Map was trained with distance measure '{distance_name}'; "
                    "pass it as distance_measure to restore the map"
                ) from None
        som = cls(config, distance_measure=distance_measure)

        nodes = data['nodes']
        dim = len(nodes[0]['weights']) if nodes else 0
        weights = np.zeros((som.width, som.height, dim))
        for entry in nodes:
            weights[entry['coordinate']['x'], entry['coordinate']['y']] = entry['weights']

        som.grid = Grid(som.width, som.height, dim,
                        distance_measure=som._distance_measure, weights=weights)
        for entry in nodes:
            node = som.grid[entry['coordinate']['x'], entry['coordinate']['y']]
            node.label = entry.get('label')
            node.cluster_group = entry.get('cluster_group', 0)
            node.cluster_label = entry.get('cluster_label')
            node.count = entry.get('count', 0)

        som.map_id = uuid.UUID(data['map_id'])
        som.state = SOMState(data.get('state', SOMState.TRAINED.value))
        som.total_iteration = data.get('total_iteration', 0)
        som.total_global_iteration = data.get('total_global_iteration', 0)
        return som

    def __repr__(self) -> str:
        return f"SelfOrganizingMap({self.width}x{self.height}, {self.state.value})"


def train_som(
    reader: Reader,
    config: SOMConfig,
    progress: Optional[ProgressCallback] = None,
    verbose: bool = False,
    **strategies: Any
) -> SelfOrganizingMap:
    """
    Read data, train a map and label its nodes.

    ``config.labels`` and ``config.feature_label`` are flagged as label
    columns so they stay out of the training vectors.

    Args:
        reader: Source of the dataset.
        config: Map size and hyperparameters.
        progress: Training progress callback.
        verbose: Print training progress.
        **strategies: Forwarded to ``SelfOrganizingMap`` (distance_measure,
            learning_rate, neighborhood_radius, neighborhood_kernel).

    Returns:
        The trained (and, with a feature label, labelled) map.
    """
    som = SelfOrganizingMap(config, **strategies)
    dataset = som.get_data(reader)

    for name in config.labels:
        dataset.set_label(name)
    if config.feature_label:
        dataset.set_label(config.feature_label)

    som.initialize_map()
    som.train(progress=progress, verbose=verbose)
    som.label_nodes()
    return som
