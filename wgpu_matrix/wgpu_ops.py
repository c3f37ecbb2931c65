"""GPU dispatch of the matrix and vector operations.

Every operation validates shapes on the host, stages its operands into
device buffers owned by the call, dispatches one kernel, blocks until the
queue is idle and copies the result into a new Matrix. Buffers are destroyed
before the call returns, whether it succeeds or not.
"""

import logging
import struct

import numpy as np
import wgpu

from wgpu_matrix import kernels
from wgpu_matrix.errors import (
    DeviceExecutionFailed,
    DeviceUnavailable,
    DimensionMismatch,
    NotAVector,
)
from wgpu_matrix.geometry import grid_2d_geometry, linear_geometry, reduction_geometry
from wgpu_matrix.matrix import Matrix

logger = logging.getLogger(__name__)

_STORAGE_USAGE = (
    wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.COPY_SRC
)
_UNIFORM_USAGE = wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST


# ============================================================================
# Buffer Management
# ============================================================================

class DispatchBuffers:
    """Device buffers owned by a single dispatch; destroyed on exit."""

    def __init__(self, device):
        self.device = device
        self.buffers = []

    def _track(self, buffer):
        self.buffers.append(buffer)
        return buffer

    def storage(self, data):
        """Storage buffer holding a copy of float32 host data."""
        arr = np.ascontiguousarray(data, dtype=np.float32)
        return self._track(
            self.device.create_buffer_with_data(data=arr.tobytes(), usage=_STORAGE_USAGE)
        )

    def output(self, count):
        """Uninitialised storage buffer for `count` float32 results."""
        return self._track(
            self.device.create_buffer(size=count * 4, usage=_STORAGE_USAGE)
        )

    def params(self, data):
        """16-byte uniform buffer of packed shape or scalar constants."""
        return self._track(
            self.device.create_buffer_with_data(data=data, usage=_UNIFORM_USAGE)
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        for buffer in self.buffers:
            buffer.destroy()
        self.buffers = []
        return False


# ============================================================================
# Dispatch Helper
# ============================================================================

def _run(ctx, name, geometry, inputs, out_count, params=None):
    """Execute one kernel and return its output as a float32 array.

    Args:
        ctx: WgpuContext
        name: operation name, key into ctx.pipelines
        geometry: Geometry for the dispatch
        inputs: float32 arrays bound first, in binding order
        out_count: number of float32 values in the output buffer
        params: packed uniform bytes bound after the output, or None
    """
    device = ctx.device
    if device is None:
        raise DeviceUnavailable("context has been destroyed")
    pipeline = ctx.pipeline(name)

    logger.debug(
        "dispatch %s grid=%s workgroup_size=%s workgroups=%s",
        name, geometry.grid, geometry.workgroup_size, geometry.workgroups,
    )

    try:
        with DispatchBuffers(device) as buffers:
            bound = [buffers.storage(data) for data in inputs]
            out_buffer = buffers.output(out_count)
            bound.append(out_buffer)
            if params is not None:
                bound.append(buffers.params(params))

            bind_group = device.create_bind_group(
                layout=pipeline.bind_group_layout,
                entries=[
                    {
                        "binding": i,
                        "resource": {"buffer": buf, "offset": 0, "size": buf.size},
                    }
                    for i, buf in enumerate(bound)
                ],
            )

            command_encoder = device.create_command_encoder()
            compute_pass = command_encoder.begin_compute_pass()
            compute_pass.set_pipeline(pipeline.pipeline)
            compute_pass.set_bind_group(0, bind_group)
            compute_pass.dispatch_workgroups(*geometry.workgroups)
            compute_pass.end()

            ctx.queue.submit([command_encoder.finish()])
            ctx.queue.on_submitted_work_done_sync()
            data = ctx.queue.read_buffer(out_buffer)
    except wgpu.GPUError as e:
        logger.error("dispatch %s failed: %s", name, e)
        raise DeviceExecutionFailed(name, str(e)) from e

    return np.frombuffer(data, dtype=np.float32, count=out_count).copy()


def _check_same_shape(operation, a, b):
    if a.shape != b.shape:
        raise DimensionMismatch(operation, a.shape, b.shape)


# ============================================================================
# Functional API - Matrix Operations
# ============================================================================

def matrix_multiply(ctx, a, b):
    """Matrix product (m x k) @ (k x n) -> (m x n).

    One invocation per output element, each looping over k serially.
    """
    if a.cols != b.rows:
        raise DimensionMismatch(kernels.MATRIX_MULTIPLY, a.shape, b.shape)
    m, k, n = a.rows, a.cols, b.cols
    sizes = ctx.workgroup_sizes
    geometry = grid_2d_geometry(
        n, m, sizes.tile_x, sizes.tile_y, sizes.max_workgroups_per_dimension
    )
    out = _run(
        ctx,
        kernels.MATRIX_MULTIPLY,
        geometry,
        [a.data, b.data],
        m * n,
        params=struct.pack("4I", m, n, k, geometry.x_slices),
    )
    return Matrix.with_data(m, n, out)


def _elementwise(ctx, name, a, b):
    _check_same_shape(name, a, b)
    sizes = ctx.workgroup_sizes
    count = a.rows * a.cols
    geometry = linear_geometry(count, sizes.linear, sizes.max_workgroups_per_dimension)
    out = _run(ctx, name, geometry, [a.data, b.data], count)
    return Matrix.with_data(a.rows, a.cols, out)


def matrix_add(ctx, a, b):
    """Element-wise a + b for equal-shaped matrices."""
    return _elementwise(ctx, kernels.MATRIX_ADD, a, b)


def matrix_subtract(ctx, a, b):
    """Element-wise a - b for equal-shaped matrices."""
    return _elementwise(ctx, kernels.MATRIX_SUBTRACT, a, b)


def matrix_transpose(ctx, a):
    """Transpose (rows x cols) -> (cols x rows)."""
    sizes = ctx.workgroup_sizes
    geometry = grid_2d_geometry(
        a.cols, a.rows, sizes.tile_x, sizes.tile_y, sizes.max_workgroups_per_dimension
    )
    out = _run(
        ctx,
        kernels.MATRIX_TRANSPOSE,
        geometry,
        [a.data],
        a.rows * a.cols,
        params=struct.pack("4I", a.rows, a.cols, geometry.x_slices, 0),
    )
    return Matrix.with_data(a.cols, a.rows, out)


def matrix_scalar_multiply(ctx, scalar, a):
    """Element-wise scalar * a."""
    sizes = ctx.workgroup_sizes
    count = a.rows * a.cols
    geometry = linear_geometry(count, sizes.linear, sizes.max_workgroups_per_dimension)
    out = _run(
        ctx,
        kernels.MATRIX_SCALAR_MULTIPLY,
        geometry,
        [a.data],
        count,
        params=struct.pack("4f", scalar, 0.0, 0.0, 0.0),
    )
    return Matrix.with_data(a.rows, a.cols, out)


# ============================================================================
# Functional API - Vector Operations
# ============================================================================

def vector_dot_product(ctx, a, b):
    """Dot product of two equal-length vectors, reduced in one workgroup.

    The workgroup size is fixed per context regardless of vector length.
    """
    for v in (a, b):
        if not v.is_vector():
            raise NotAVector(v.shape)
    n = a.vector_size()
    if n != b.vector_size():
        raise DimensionMismatch(kernels.VECTOR_DOT_PRODUCT, a.shape, b.shape)
    geometry = reduction_geometry(n, ctx.workgroup_sizes.reduction)
    out = _run(
        ctx,
        kernels.VECTOR_DOT_PRODUCT,
        geometry,
        [a.data, b.data],
        1,
        params=struct.pack("4I", n, 0, 0, 0),
    )
    return float(out[0])


def vector_add(ctx, a, b):
    """Element-wise sum of two equal-length 1D sequences.

    Returns:
        float32 numpy array
    """
    a = np.asarray(a, dtype=np.float32).reshape(-1)
    b = np.asarray(b, dtype=np.float32).reshape(-1)
    if a.size != b.size:
        raise DimensionMismatch(kernels.VECTOR_ADD, a.size, b.size)
    if a.size == 0:
        return np.zeros(0, dtype=np.float32)
    sizes = ctx.workgroup_sizes
    geometry = linear_geometry(a.size, sizes.linear, sizes.max_workgroups_per_dimension)
    return _run(ctx, kernels.VECTOR_ADD, geometry, [a, b], a.size)
