"""Exception types raised by wgpu_matrix.

Shape and index errors are raised on the host before any device resource is
created, so catching them never leaves device state behind.
"""


class WgpuMatrixError(Exception):
    """Base class for all wgpu_matrix errors."""


class DeviceUnavailable(WgpuMatrixError, RuntimeError):
    """No compatible compute adapter or device could be obtained."""

    def __init__(self, reason="no compatible GPU adapter found"):
        super().__init__(f"Device unavailable: {reason}")
        self.reason = reason


class KernelCompilationFailed(WgpuMatrixError, RuntimeError):
    """A WGSL kernel failed to compile into a compute pipeline."""

    def __init__(self, operation, detail=""):
        msg = f"Failed to compile kernel for '{operation}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.operation = operation
        self.detail = detail


class ShapeMismatch(WgpuMatrixError, ValueError):
    """Data length does not match the declared matrix shape."""

    def __init__(self, expected, actual, message=None):
        super().__init__(
            message or f"Data length {actual} does not match matrix size {expected}"
        )
        self.expected = expected
        self.actual = actual


class DimensionMismatch(WgpuMatrixError, ValueError):
    """Operand shapes are incompatible for an operation."""

    def __init__(self, operation, left, right):
        super().__init__(
            f"Incompatible dimensions for {operation}: {left} and {right}"
        )
        self.operation = operation
        self.left = left
        self.right = right


class IndexOutOfBounds(WgpuMatrixError, IndexError):
    """Element index outside the matrix or vector bounds."""

    def __init__(self, index, bound):
        super().__init__(f"Index {index} out of bounds for {bound}")
        self.index = index
        self.bound = bound


class NotAVector(WgpuMatrixError, ValueError):
    """A vector operation was applied to a matrix with rows > 1 and cols > 1."""

    def __init__(self, shape):
        super().__init__(f"Matrix of shape {shape} is not a vector")
        self.shape = shape


class DeviceExecutionFailed(WgpuMatrixError, RuntimeError):
    """The device reported an error while encoding, running or reading back."""

    def __init__(self, operation, detail=""):
        msg = f"Device execution failed for '{operation}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.operation = operation
        self.detail = detail
