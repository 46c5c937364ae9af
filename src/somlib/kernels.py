"""
Neighborhood Kernels.

A kernel gives the influence of the BMU on a node at grid distance ``d``
when the neighborhood radius is ``r``. The training loop only uses a kernel
when the map is built with ``use_kernel=True``; by default every node inside
the radius receives the same update.
"""

from abc import ABC, abstractmethod
from typing import Union
import numpy as np

ArrayLike = Union[float, np.ndarray]


class NeighborhoodKernel(ABC):
    """Influence as a function of grid distance and radius."""

    name = 'custom'

    @abstractmethod
    def __call__(self, distance: ArrayLike, radius: float) -> ArrayLike:
        """Influence in [0, 1] for each distance."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class GaussianKernel(NeighborhoodKernel):
    """``exp(-d^2 / (2 r^2))``; a zero radius keeps only ``d == 0``."""

    name = 'gaussian'

    def __call__(self, distance, radius):
        distance = np.asarray(distance, dtype=np.float64)
        if radius <= 0:
            result = (distance == 0).astype(np.float64)
        else:
            result = np.exp(-(distance ** 2) / (2 * radius ** 2))
        return float(result) if result.ndim == 0 else result


class BubbleKernel(NeighborhoodKernel):
    """1 inside the radius, 0 outside."""

    name = 'bubble'

    def __call__(self, distance, radius):
        distance = np.asarray(distance, dtype=np.float64)
        result = (distance <= radius).astype(np.float64)
        return float(result) if result.ndim == 0 else result


NEIGHBORHOOD_KERNELS = {
    GaussianKernel.name: GaussianKernel,
    BubbleKernel.name: BubbleKernel,
}


def get_kernel(name: str) -> NeighborhoodKernel:
    try:
        return NEIGHBORHOOD_KERNELS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown kernel: {name}. Choose from {sorted(NEIGHBORHOOD_KERNELS)}"
        ) from None
