"""Host-side dispatch tests against a recording fake device (no GPU needed)."""

import struct

import numpy as np
import pytest

from conftest import FakeDevice
from wgpu_matrix import (
    DeviceExecutionFailed,
    DeviceUnavailable,
    DimensionMismatch,
    KernelCompilationFailed,
    Matrix,
    NotAVector,
    WgpuContext,
    matrix_add,
    matrix_multiply,
    matrix_scalar_multiply,
    matrix_subtract,
    matrix_transpose,
    vector_add,
    vector_dot_product,
)


def _bound_sizes(dispatch):
    return [entry["resource"]["buffer"].size for entry in dispatch["entries"]]


def test_context_compiles_every_kernel_once(fake_device, fake_ctx):
    assert set(fake_ctx.pipelines) == set(fake_device.shaders)
    assert len(fake_device.shaders) == 7
    assert fake_ctx.pipeline("matrix_add").bindings == ("read", "read", "read_write")
    with pytest.raises(TypeError):
        fake_ctx.pipelines["matrix_add"] = None

    matrix_add(fake_ctx, Matrix(2, 2), Matrix(2, 2))
    matrix_add(fake_ctx, Matrix(2, 2), Matrix(2, 2))
    assert len(fake_device.shaders) == 7


def test_compile_failure_names_operation():
    with pytest.raises(KernelCompilationFailed) as exc:
        WgpuContext(device=FakeDevice(fail_compile="vector_dot_product"))
    assert exc.value.operation == "vector_dot_product"


def test_context_uses_device_limits():
    device = FakeDevice(limits={
        "max-compute-invocations-per-workgroup": 96,
        "max-compute-workgroup-size-x": 96,
    })
    ctx = WgpuContext(device=device)
    assert ctx.workgroup_sizes.linear == 96
    assert ctx.workgroup_sizes.reduction == 64
    assert "array<f32, 64>" in device.shaders["vector_dot_product"]


def test_multiply_geometry_and_buffers(fake_device, fake_ctx):
    a = Matrix.with_data(2, 3, [1, 2, 3, 4, 5, 6])
    b = Matrix.with_data(3, 20, np.arange(60))
    result = matrix_multiply(fake_ctx, a, b)

    assert result.shape == (2, 20)
    (dispatch,) = fake_device.dispatches
    assert dispatch["pipeline"] == "matrix_multiply"
    assert dispatch["workgroups"] == (2, 1, 1)
    # a, b, out, params
    assert _bound_sizes(dispatch) == [24, 240, 160, 16]
    params = dispatch["entries"][3]["resource"]["buffer"].data
    assert struct.unpack("4I", params) == (2, 20, 3, 1)
    assert fake_device.queue.submitted == 1
    assert fake_device.queue.waits == 1


def test_buffers_released_after_call(fake_device, fake_ctx):
    matrix_transpose(fake_ctx, Matrix(4, 5))
    assert fake_device.buffers
    assert all(buf.destroyed for buf in fake_device.buffers)


def test_result_does_not_alias_inputs(fake_ctx):
    a = Matrix.with_data(1, 2, [1.0, 2.0])
    out = matrix_add(fake_ctx, a, a)
    out.set(0, 0, 42.0)
    assert a.get(0, 0) == 1.0


def test_operand_data_staged_in_order(fake_device, fake_ctx):
    a = Matrix.with_data(1, 3, [1, 2, 3])
    b = Matrix.with_data(1, 3, [4, 5, 6])
    matrix_subtract(fake_ctx, a, b)
    (dispatch,) = fake_device.dispatches
    staged = [
        np.frombuffer(entry["resource"]["buffer"].data, dtype=np.float32)
        for entry in dispatch["entries"][:2]
    ]
    assert np.array_equal(staged[0], [1, 2, 3])
    assert np.array_equal(staged[1], [4, 5, 6])


def test_elementwise_geometry(fake_device, fake_ctx):
    matrix_add(fake_ctx, Matrix(30, 30), Matrix(30, 30))
    matrix_scalar_multiply(fake_ctx, 2.5, Matrix(1, 257))
    add_dispatch, scale_dispatch = fake_device.dispatches
    assert add_dispatch["workgroups"] == (4, 1, 1)
    assert scale_dispatch["workgroups"] == (2, 1, 1)
    # a, out, params
    assert _bound_sizes(scale_dispatch) == [257 * 4, 257 * 4, 16]
    params = scale_dispatch["entries"][2]["resource"]["buffer"].data
    assert struct.unpack("4f", params)[0] == 2.5


def test_transpose_geometry(fake_device, fake_ctx):
    result = matrix_transpose(fake_ctx, Matrix(2, 40))
    assert result.shape == (40, 2)
    (dispatch,) = fake_device.dispatches
    assert dispatch["workgroups"] == (3, 1, 1)
    params = dispatch["entries"][2]["resource"]["buffer"].data
    assert struct.unpack("4I", params)[:2] == (2, 40)


def test_transpose_wide_matrix_folds_into_z(fake_device, fake_ctx):
    cols = 65535 * 16 + 1
    result = matrix_transpose(fake_ctx, Matrix(1, cols))
    assert result.shape == (cols, 1)
    (dispatch,) = fake_device.dispatches
    assert dispatch["workgroups"] == (65535, 1, 2)
    params = dispatch["entries"][2]["resource"]["buffer"].data
    assert struct.unpack("4I", params)[:3] == (1, cols, 2)


def test_multiply_folds_on_small_workgroup_limit():
    device = FakeDevice(limits={"max-compute-workgroups-per-dimension": 2})
    ctx = WgpuContext(device=device)
    matrix_multiply(ctx, Matrix(40, 3), Matrix(3, 70))
    (dispatch,) = device.dispatches
    # 5 x 3 tiles of 16 split into 3 x 2 slices of at most 2 x 2
    assert dispatch["workgroups"] == (2, 2, 6)
    params = dispatch["entries"][3]["resource"]["buffer"].data
    assert struct.unpack("4I", params) == (40, 70, 3, 3)


def test_dot_product_single_workgroup(fake_device, fake_ctx):
    a = Matrix.vector(np.arange(10000))
    b = Matrix.with_data(1, 10000, np.ones(10000))
    value = vector_dot_product(fake_ctx, a, b)
    assert isinstance(value, float)
    (dispatch,) = fake_device.dispatches
    assert dispatch["workgroups"] == (1, 1, 1)
    assert _bound_sizes(dispatch) == [40000, 40000, 4, 16]


@pytest.mark.parametrize("call", [
    lambda ctx: matrix_multiply(ctx, Matrix(2, 3), Matrix(2, 2)),
    lambda ctx: matrix_add(ctx, Matrix(2, 3), Matrix(3, 2)),
    lambda ctx: matrix_subtract(ctx, Matrix(2, 2), Matrix(2, 3)),
    lambda ctx: vector_dot_product(ctx, Matrix.vector([1, 2]), Matrix.vector([1, 2, 3])),
    lambda ctx: vector_add(ctx, [1, 2], [1, 2, 3]),
])
def test_dimension_mismatch_before_device_work(fake_device, fake_ctx, call):
    with pytest.raises(DimensionMismatch):
        call(fake_ctx)
    assert fake_device.buffers == []
    assert fake_device.dispatches == []


def test_dimension_mismatch_reports_shapes(fake_ctx):
    with pytest.raises(DimensionMismatch) as exc:
        matrix_multiply(fake_ctx, Matrix(2, 3), Matrix(2, 2))
    assert exc.value.left == (2, 3)
    assert exc.value.right == (2, 2)


def test_dot_product_rejects_matrix(fake_device, fake_ctx):
    with pytest.raises(NotAVector):
        vector_dot_product(fake_ctx, Matrix(2, 2), Matrix.vector([1, 2, 3, 4]))
    assert fake_device.buffers == []


def test_submit_failure_raises_and_releases():
    device = FakeDevice(fail_submit=True)
    ctx = WgpuContext(device=device)
    with pytest.raises(DeviceExecutionFailed) as exc:
        matrix_add(ctx, Matrix(2, 2), Matrix(2, 2))
    assert exc.value.operation == "matrix_add"
    assert all(buf.destroyed for buf in device.buffers)


def test_vector_add_host_paths(fake_device, fake_ctx):
    assert vector_add(fake_ctx, [], []).size == 0
    out = vector_add(fake_ctx, np.arange(300), np.arange(300))
    assert out.shape == (300,)
    assert out.dtype == np.float32
    assert fake_device.dispatches[0]["workgroups"] == (2, 1, 1)


def test_destroyed_context(fake_device):
    with WgpuContext(device=fake_device) as ctx:
        pass
    assert fake_device.destroyed
    with pytest.raises(DeviceUnavailable):
        matrix_add(ctx, Matrix(1, 1), Matrix(1, 1))
