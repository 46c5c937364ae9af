"""
Decay Strategies for the learning rate and neighborhood radius.

Each strategy maps ``(iteration, total_iterations)`` to a value. All of them
return ``initial`` at iteration 0 and exactly ``final`` from the last
iteration on.
"""

from abc import ABC, abstractmethod
import numpy as np

from .exceptions import ConfigurationError


class DecayStrategy(ABC):
    """Schedule from an initial value to a final value over training."""

    def __init__(self, initial: float, final: float):
        if initial < 0 or final < 0:
            raise ConfigurationError(
                f"Decay values must be non-negative, got {initial} -> {final}"
            )
        if final > initial:
            raise ConfigurationError(
                f"Final value {final} exceeds initial value {initial}; "
                "a decay schedule must not increase"
            )
        self.initial = float(initial)
        self.final = float(final)

    @abstractmethod
    def _decay(self, progress: float) -> float:
        """Value at ``0 < progress < 1``."""

    def __call__(self, iteration: int, total_iterations: int) -> float:
        if total_iterations <= 0 or iteration <= 0:
            return self.initial
        if iteration >= total_iterations:
            return self.final
        return float(self._decay(iteration / total_iterations))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(initial={self.initial}, final={self.final})"


class ConstantDecay(DecayStrategy):
    """The same value at every iteration."""

    def __init__(self, value: float):
        super().__init__(value, value)

    def _decay(self, progress):
        return self.initial


class PowerSeriesDecay(DecayStrategy):
    """
    Geometric decay: ``initial * (final / initial) ** (t / T)``.

    This is the default schedule for both the learning rate and the radius.
    """

    def __init__(self, initial: float, final: float):
        if initial <= 0:
            raise ConfigurationError(
                f"Power series decay needs a positive initial value, got {initial}"
            )
        super().__init__(initial, final)

    def _decay(self, progress):
        return self.initial * (self.final / self.initial) ** progress


class LinearDecay(DecayStrategy):
    """Straight line from initial to final."""

    def _decay(self, progress):
        return self.initial + (self.final - self.initial) * progress


class ExponentialDecay(DecayStrategy):
    """
    Exponential approach: ``final + (initial - final) * exp(-rate * t / T)``.

    Snaps to ``final`` at the last iteration.
    """

    def __init__(self, initial: float, final: float, rate: float = 4.0):
        super().__init__(initial, final)
        self.rate = float(rate)

    def _decay(self, progress):
        return self.final + (self.initial - self.final) * np.exp(-self.rate * progress)


DECAY_STRATEGIES = {
    'power': PowerSeriesDecay,
    'linear': LinearDecay,
    'exponential': ExponentialDecay,
}


def make_decay(kind: str, initial: float, final: float) -> DecayStrategy:
    """
    Build a decay strategy by name.

    A constant schedule is returned whenever ``initial == final``.
    """
    if initial == final:
        return ConstantDecay(initial)
    try:
        cls = DECAY_STRATEGIES[kind.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown decay: {kind}. Choose from {sorted(DECAY_STRATEGIES)}"
        ) from None
    return cls(initial, final)
