"""Host-resident dense float32 matrix.

Matrix is the value type consumed and produced by every GPU operation. It
never references device memory: dispatch results are copied back into fresh
Matrix instances.
"""

import operator

import numpy as np

from wgpu_matrix.errors import (
    DimensionMismatch,
    IndexOutOfBounds,
    NotAVector,
    ShapeMismatch,
)


def _as_float32(data, expected):
    """Flatten data to float32, rejecting ragged or non-numeric input."""
    try:
        return np.asarray(data, dtype=np.float32).reshape(-1)
    except (TypeError, ValueError) as e:
        raise ShapeMismatch(
            expected,
            len(data) if hasattr(data, "__len__") else None,
            message=f"Ragged or non-numeric matrix data: {e}",
        ) from e


class Matrix:
    """Row-major dense matrix of 32-bit floats.

    A matrix with a single row or a single column is also a vector.
    """

    def __init__(self, rows, cols):
        """Create a zero-filled matrix.

        Args:
            rows: number of rows (>= 1)
            cols: number of columns (>= 1)

        Raises:
            TypeError: if a dimension is not an integer
        """
        rows, cols = operator.index(rows), operator.index(cols)
        if rows < 1 or cols < 1:
            raise ShapeMismatch(
                (rows, cols),
                rows * cols,
                message=f"Matrix dimensions must be >= 1, got {rows}x{cols}",
            )
        self.rows = rows
        self.cols = cols
        self._data = np.zeros(rows * cols, dtype=np.float32)

    # ---- Factory Methods ----
    @classmethod
    def with_data(cls, rows, cols, data):
        """Create a matrix from row-major data.

        Raises:
            ShapeMismatch: if len(data) != rows * cols, or data is ragged
        """
        matrix = cls(rows, cols)
        arr = _as_float32(data, matrix.rows * matrix.cols)
        if arr.size != matrix.rows * matrix.cols:
            raise ShapeMismatch(matrix.rows * matrix.cols, arr.size)
        matrix._data = arr.copy()
        return matrix

    @classmethod
    def vector(cls, data):
        """Create a column vector (len(data) x 1)."""
        arr = _as_float32(data, None)
        return cls.with_data(arr.size, 1, arr)

    @classmethod
    def identity(cls, n):
        """Create an n x n identity matrix."""
        matrix = cls(n, n)
        matrix._data[:: n + 1] = 1.0
        return matrix

    @classmethod
    def from_numpy(cls, arr):
        """Create a matrix from a 1D (column vector) or 2D numpy array."""
        arr = np.asarray(arr)
        if arr.ndim == 1:
            return cls.vector(arr)
        if arr.ndim != 2:
            raise ShapeMismatch(
                2, arr.ndim, message=f"Expected a 1D or 2D array, got {arr.ndim}D"
            )
        return cls.with_data(arr.shape[0], arr.shape[1], arr)

    # ---- Properties ----
    @property
    def shape(self):
        return (self.rows, self.cols)

    @property
    def data(self):
        """Flat row-major float32 view of the storage."""
        return self._data

    def __len__(self):
        return self.rows * self.cols

    # ---- Element Access ----
    def _offset(self, row, col):
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexOutOfBounds((row, col), self.shape)
        return row * self.cols + col

    def get(self, row, col):
        """Return the element at (row, col)."""
        return float(self._data[self._offset(row, col)])

    def set(self, row, col, value):
        """Set the element at (row, col)."""
        self._data[self._offset(row, col)] = value

    def row(self, row):
        """Return row `row` as a new 1 x cols matrix."""
        if not 0 <= row < self.rows:
            raise IndexOutOfBounds(row, self.rows)
        start = row * self.cols
        return Matrix.with_data(1, self.cols, self._data[start:start + self.cols])

    def column(self, col):
        """Return column `col` as a new rows x 1 matrix."""
        if not 0 <= col < self.cols:
            raise IndexOutOfBounds(col, self.cols)
        return Matrix.with_data(self.rows, 1, self._data[col::self.cols])

    # ---- Vector Access ----
    def is_vector(self):
        return self.rows == 1 or self.cols == 1

    def vector_size(self):
        """Number of elements of a vector; 0 for a non-vector matrix."""
        if not self.is_vector():
            return 0
        return max(self.rows, self.cols)

    def vector_get(self, index):
        """Return element `index` along the vector's non-unit dimension."""
        if not self.is_vector():
            raise NotAVector(self.shape)
        if not 0 <= index < self.vector_size():
            raise IndexOutOfBounds(index, self.vector_size())
        return float(self._data[index])

    def dot_cpu(self, other):
        """Host reference dot product, validated like the GPU version."""
        for m in (self, other):
            if not m.is_vector():
                raise NotAVector(m.shape)
        if self.vector_size() != other.vector_size():
            raise DimensionMismatch("dot_product", self.shape, other.shape)
        return float(np.dot(self._data, other._data))

    # ---- Conversion / Comparison ----
    def to_numpy(self):
        """Copy the matrix into a (rows, cols) numpy array."""
        return self._data.reshape(self.rows, self.cols).copy()

    def allclose(self, other, atol=1e-5, rtol=1e-5):
        return self.shape == other.shape and np.allclose(
            self._data, other._data, atol=atol, rtol=rtol
        )

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._data, other._data)

    __hash__ = None

    def __repr__(self):
        return f"Matrix(rows={self.rows}, cols={self.cols})"
