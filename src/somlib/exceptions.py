"""
Exceptions raised by somlib.

Every error derives from :class:`SOMError` and from the builtin exception
that best describes it, so callers may catch either.
"""


class SOMError(Exception):
    """Base class for all somlib errors."""


class FeatureNotFoundError(SOMError, KeyError):
    """A feature (column) name does not exist in the dataset."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Feature does not exist: {name!r}")

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]


class InstanceIndexError(SOMError, IndexError):
    """An instance index is outside the dataset bounds."""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        super().__init__(
            f"Instance index {index} out of range for dataset with {count} instances"
        )


class ConversionError(SOMError, ValueError):
    """A raw field value cannot be converted to the requested numeric type."""

    def __init__(self, value, dtype, column: int = None):
        self.value = value
        self.dtype = dtype
        self.column = column
        where = f" in column {column}" if column is not None else ""
        super().__init__(f"Cannot convert {value!r}{where} to {dtype}")


class InvalidStateError(SOMError, RuntimeError):
    """An operation was called in a state where it is not defined."""


class TrainingCancelledError(InvalidStateError):
    """Training was stopped before completion; the grid is partially updated."""

    def __init__(self, iteration: int, total: int, reason: str = "cancelled"):
        self.iteration = iteration
        self.total = total
        self.reason = reason
        super().__init__(f"Training {reason} at iteration {iteration}/{total}")


class ConfigurationError(SOMError, ValueError):
    """Invalid training configuration."""
