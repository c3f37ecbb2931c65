"""
wgpu_matrix: GPU dense linear algebra via wgpu-py.

Runs matrix multiply, add, subtract, transpose, scalar multiply and vector
dot product as WGSL compute shaders on any adapter wgpu can reach
(Vulkan, Metal, D3D12).

Modules:
    matrix       - host-side Matrix container
    wgpu_context - device, queue and compiled pipelines
    wgpu_ops     - the dispatched operations
    geometry     - workgroup sizing per operation
    wgpu_config  - DispatchConfig and device-limit clamping
    kernels      - WGSL sources
"""

from wgpu_matrix.errors import (
    WgpuMatrixError,
    DeviceUnavailable, KernelCompilationFailed, DeviceExecutionFailed,
    ShapeMismatch, DimensionMismatch, IndexOutOfBounds, NotAVector,
)

from wgpu_matrix.matrix import Matrix
from wgpu_matrix.wgpu_config import DispatchConfig
from wgpu_matrix.wgpu_context import WgpuContext

from wgpu_matrix.wgpu_ops import (
    matrix_multiply, matrix_add, matrix_subtract,
    matrix_transpose, matrix_scalar_multiply,
    vector_dot_product, vector_add,
)

__all__ = [
    # Core
    "Matrix", "WgpuContext", "DispatchConfig",
    # Operations
    "matrix_multiply", "matrix_add", "matrix_subtract",
    "matrix_transpose", "matrix_scalar_multiply",
    "vector_dot_product", "vector_add",
    # Errors
    "WgpuMatrixError",
    "DeviceUnavailable", "KernelCompilationFailed", "DeviceExecutionFailed",
    "ShapeMismatch", "DimensionMismatch", "IndexOutOfBounds", "NotAVector",
]
