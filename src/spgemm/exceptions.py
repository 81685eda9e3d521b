"""Exceptions raised by the SpGEMM engine."""


class SpGEMMError(Exception):
    """Base exception for all SpGEMM errors."""

    pass


class DimensionMismatch(SpGEMMError, ValueError):
    """Raised when the inner dimensions of a product disagree."""

    def __init__(self, left_shape, right_shape):
        super().__init__(
            f"Cannot multiply {left_shape[0]} x {left_shape[1]} "
            f"by {right_shape[0]} x {right_shape[1]}"
        )
        self.left_shape = tuple(left_shape)
        self.right_shape = tuple(right_shape)


class IndexOutOfRange(SpGEMMError, IndexError):
    """Raised when a row or column index falls outside the declared shape."""

    def __init__(self, axis, position, index, bound):
        super().__init__(
            f"{axis} index {index} at entry {position} outside [0, {bound})"
        )
        self.axis = axis
        self.position = position
        self.index = index
        self.bound = bound


class CapacityExceeded(SpGEMMError, OverflowError):
    """Raised when an intermediate or output count does not fit its limit."""

    def __init__(self, message, required, limit):
        super().__init__(message)
        self.required = required
        self.limit = limit


class OperandNotSorted(SpGEMMError, ValueError):
    """Raised when the right operand is not grouped by row."""

    pass
