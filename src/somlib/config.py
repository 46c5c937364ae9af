"""
Training Configuration.

``SOMConfig`` holds the map size and hyperparameters. It can be built
directly, from the service's request payload (PascalCase keys) or from a
JSON file.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json

from .exceptions import ConfigurationError


@dataclass
class SOMConfig:
    """Map size and training hyperparameters."""

    width: int
    height: int

    # Learning rate; final None means a constant rate
    initial_learning_rate: float = 0.5
    final_learning_rate: Optional[float] = None

    # Neighborhood radius; initial None means max(width, height) / 2,
    # final None means 1.0 capped at the initial radius
    initial_radius: Optional[float] = None
    final_radius: Optional[float] = None

    epoch: int = 1
    global_epoch: Optional[int] = None
    local_epoch: Optional[int] = None

    # Labeling
    k: int = 3
    feature_label: Optional[str] = None
    labels: List[str] = field(default_factory=list)

    random_seed: Optional[int] = None
    use_kernel: bool = False

    @property
    def resolved_final_learning_rate(self) -> float:
        if self.final_learning_rate is None:
            return self.initial_learning_rate
        return self.final_learning_rate

    @property
    def resolved_initial_radius(self) -> float:
        if self.initial_radius is None:
            return max(self.width, self.height) / 2
        return self.initial_radius

    @property
    def resolved_final_radius(self) -> float:
        if self.final_radius is None:
            return min(1.0, self.resolved_initial_radius)
        return self.final_radius

    @property
    def resolved_global_epoch(self) -> int:
        return self.epoch if self.global_epoch is None else self.global_epoch

    def validate(self) -> 'SOMConfig':
        """
        Check the configuration.

        Returns:
            self, for chaining.

        Raises:
            ConfigurationError: On the first invalid value found.
        """
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"Map size must be positive, got {self.width}x{self.height}"
            )
        if self.epoch <= 0:
            raise ConfigurationError(f"Epoch must be positive, got {self.epoch}")
        if self.resolved_global_epoch <= 0:
            raise ConfigurationError(
                f"GlobalEpoch must be positive, got {self.global_epoch}"
            )
        if self.local_epoch is not None and self.local_epoch <= 0:
            raise ConfigurationError(
                f"LocalEpoch must be positive, got {self.local_epoch}"
            )
        if self.k < 1:
            raise ConfigurationError(f"K must be at least 1, got {self.k}")
        # Each update must stay between the old weight and the instance
        if not 0 <= self.resolved_final_learning_rate <= self.initial_learning_rate <= 1:
            raise ConfigurationError(
                "Learning rates must satisfy 0 <= final <= initial <= 1, got "
                f"{self.initial_learning_rate} -> {self.resolved_final_learning_rate}"
            )
        if not 0 <= self.resolved_final_radius <= self.resolved_initial_radius:
            raise ConfigurationError(
                "Radii must satisfy 0 <= final <= initial, got "
                f"{self.resolved_initial_radius} -> {self.resolved_final_radius}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_request(cls, payload: Dict[str, Any]) -> 'SOMConfig':
        """
        Build a configuration from a training request payload.

        ``LearningRate`` alone gives a constant rate; ``InitialLearningRate``
        and ``FinalLearningRate`` give a decaying one. ``Labels`` may be a
        list or a comma-separated string.
        """
        def get(key, default=None):
            value = payload.get(key, default)
            return default if value is None else value

        try:
            width = int(payload['Width'])
            height = int(payload['Height'])
        except KeyError as exc:
            raise ConfigurationError(f"Missing required field: {exc.args[0]}") from None
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid map size: {exc}") from None

        labels = get('Labels', [])
        if isinstance(labels, str):
            labels = [item.strip() for item in labels.split(',') if item.strip()]

        initial_lr = get('InitialLearningRate', get('LearningRate', 0.5))
        final_lr = payload.get('FinalLearningRate')

        try:
            config = cls(
                width=width,
                height=height,
                initial_learning_rate=float(initial_lr),
                final_learning_rate=None if final_lr is None else float(final_lr),
                initial_radius=(None if payload.get('InitialRadius') is None
                                else float(payload['InitialRadius'])),
                final_radius=(None if payload.get('FinalRadius') is None
                              else float(payload['FinalRadius'])),
                epoch=int(get('Epoch', 1)),
                global_epoch=(None if payload.get('GlobalEpoch') is None
                              else int(payload['GlobalEpoch'])),
                local_epoch=(None if payload.get('LocalEpoch') is None
                             else int(payload['LocalEpoch'])),
                k=int(get('K', 3)),
                feature_label=payload.get('FeatureLabel') or None,
                labels=list(labels),
                random_seed=payload.get('RandomSeed'),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid training request: {exc}") from None

        return config.validate()

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'SOMConfig':
        """Load a configuration written by ``to_json`` (snake_case keys)."""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        try:
            return cls(**data).validate()
        except TypeError as exc:
            raise ConfigurationError(f"Invalid configuration file {path}: {exc}") from None

    def to_json(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)
