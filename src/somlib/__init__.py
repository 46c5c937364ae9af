"""
somlib: Self-Organizing Maps

A Python library for training self-organizing maps on tabular data and
labelling the trained nodes.

Key Features:
- Dataset model with key/label columns excluded from training vectors
- Online SOM training with pluggable distance, decay and kernel strategies
- K-nearest-neighbor node labelling and cluster letter assignment
- Map diagnostics (quantization/topographic error, U-matrix, hit map)
- Visualization tools (matplotlib, optional plotly)
"""

__version__ = "0.1.0"

from .config import SOMConfig
from .dataset import Dataset, Feature, Instance
from .decay import (
    DecayStrategy,
    ConstantDecay,
    PowerSeriesDecay,
    LinearDecay,
    ExponentialDecay,
    make_decay,
)
from .distance import (
    DistanceMeasure,
    EuclideanDistance,
    ManhattanDistance,
    ChebyshevDistance,
    CosineDistance,
    get_distance_measure,
)
from .exceptions import (
    SOMError,
    FeatureNotFoundError,
    InstanceIndexError,
    ConversionError,
    InvalidStateError,
    TrainingCancelledError,
    ConfigurationError,
)
from .kernels import NeighborhoodKernel, GaussianKernel, BubbleKernel, get_kernel
from .labelling import KNNLabeller, assign_cluster_labels, letter_queue
from .node import Coordinate, Grid, Node
from .reader import Reader, CSVReader, ArrayReader
from .som import SelfOrganizingMap, SOMState, train_som

# Visualization functions (optional import)
try:
    from .visualization import (
        plot_umatrix,
        plot_hit_map,
        plot_label_map,
        plot_component_planes,
        create_interactive_umatrix,
        create_training_progress,
    )
    _VIZ_AVAILABLE = True
except ImportError:
    _VIZ_AVAILABLE = False

__all__ = [
    "SOMConfig",
    "Dataset",
    "Feature",
    "Instance",
    "DecayStrategy",
    "ConstantDecay",
    "PowerSeriesDecay",
    "LinearDecay",
    "ExponentialDecay",
    "make_decay",
    "DistanceMeasure",
    "EuclideanDistance",
    "ManhattanDistance",
    "ChebyshevDistance",
    "CosineDistance",
    "get_distance_measure",
    "SOMError",
    "FeatureNotFoundError",
    "InstanceIndexError",
    "ConversionError",
    "InvalidStateError",
    "TrainingCancelledError",
    "ConfigurationError",
    "NeighborhoodKernel",
    "GaussianKernel",
    "BubbleKernel",
    "get_kernel",
    "KNNLabeller",
    "assign_cluster_labels",
    "letter_queue",
    "Coordinate",
    "Grid",
    "Node",
    "Reader",
    "CSVReader",
    "ArrayReader",
    "SelfOrganizingMap",
    "SOMState",
    "train_som",
]

if _VIZ_AVAILABLE:
    __all__.extend([
        "plot_umatrix",
        "plot_hit_map",
        "plot_label_map",
        "plot_component_planes",
        "create_interactive_umatrix",
        "create_training_progress",
    ])
