"""WGSL compute kernels.

Each kernel is a template whose workgroup-size placeholders are filled in
once per context (see WgpuContext), together with the binding layout the
dispatch engine must follow. Access modes are "read" (read-only storage),
"read_write" (storage) and "uniform".
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class KernelSpec:
    name: str
    template: str
    bindings: Tuple[str, ...]

    def render(self, sizes):
        """Substitute the context's workgroup sizes into the template."""
        code = self.template
        for key, value in (
            ("workgroup_size", sizes.linear),
            ("reduction_size", sizes.reduction),
            ("tile_x", sizes.tile_x),
            ("tile_y", sizes.tile_y),
        ):
            code = code.replace("{" + key + "}", str(value))
        return code


# ============================================================================
# WGSL Compute Shader Sources
# ============================================================================

# Linear kernels fold oversized dispatches into y, so the flat index is
# gid.x + gid.y * (threads per row of workgroups).

WGSL_MATRIX_ADD = """
@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read> b: array<f32>;
@group(0) @binding(2)
var<storage, read_write> out: array<f32>;

@compute @workgroup_size({workgroup_size})
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let idx = gid.x + gid.y * nwg.x * {workgroup_size}u;
    if (idx < arrayLength(&out)) {
        out[idx] = a[idx] + b[idx];
    }
}
"""

WGSL_MATRIX_SUB = """
@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read> b: array<f32>;
@group(0) @binding(2)
var<storage, read_write> out: array<f32>;

@compute @workgroup_size({workgroup_size})
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let idx = gid.x + gid.y * nwg.x * {workgroup_size}u;
    if (idx < arrayLength(&out)) {
        out[idx] = a[idx] - b[idx];
    }
}
"""

WGSL_SCALAR_MUL = """
@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read_write> out: array<f32>;
@group(0) @binding(2)
var<uniform> params: vec4<f32>;

@compute @workgroup_size({workgroup_size})
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let idx = gid.x + gid.y * nwg.x * {workgroup_size}u;
    if (idx < arrayLength(&out)) {
        out[idx] = a[idx] * params.x;
    }
}
"""

# 2D kernels stack oversized grids along z; params.w = x slices, so
# col = gid.x + (gid.z % w) * (x threads per slice), row likewise with z / w.

# Untiled: each invocation walks the full shared dimension k.
WGSL_MATRIX_MUL = """
@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read> b: array<f32>;
@group(0) @binding(2)
var<storage, read_write> out: array<f32>;
@group(0) @binding(3)
var<uniform> params: vec4<u32>;

@compute @workgroup_size({tile_x}, {tile_y})
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let m = params.x;
    let n = params.y;
    let k = params.z;
    let x_slices = params.w;
    let col = gid.x + (gid.z % x_slices) * nwg.x * {tile_x}u;
    let row = gid.y + (gid.z / x_slices) * nwg.y * {tile_y}u;

    if (row >= m || col >= n) {
        return;
    }

    var sum = 0.0;
    for (var t = 0u; t < k; t = t + 1u) {
        sum = sum + a[row * k + t] * b[t * n + col];
    }
    out[row * n + col] = sum;
}
"""

WGSL_TRANSPOSE = """
@group(0) @binding(0)
var<storage, read> x: array<f32>;
@group(0) @binding(1)
var<storage, read_write> out: array<f32>;
@group(0) @binding(2)
var<uniform> params: vec4<u32>;

@compute @workgroup_size({tile_x}, {tile_y})
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let rows = params.x;
    let cols = params.y;
    let x_slices = params.z;
    let i = gid.y + (gid.z / x_slices) * nwg.y * {tile_y}u;
    let j = gid.x + (gid.z % x_slices) * nwg.x * {tile_x}u;

    if (i < rows && j < cols) {
        out[j * rows + i] = x[i * cols + j];
    }
}
"""

WGSL_DOT_PRODUCT = """
// Single workgroup. params.x = vector length
@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read> b: array<f32>;
@group(0) @binding(2)
var<storage, read_write> out: array<f32>;
@group(0) @binding(3)
var<uniform> params: vec4<u32>;

var<workgroup> partials: array<f32, {reduction_size}>;

@compute @workgroup_size({reduction_size})
fn main(@builtin(local_invocation_id) lid: vec3<u32>) {
    let n = params.x;
    let tid = lid.x;

    // Step 1: strided private partial sum
    var sum = 0.0;
    var i = tid;
    loop {
        if (i >= n) { break; }
        sum = sum + a[i] * b[i];
        i = i + {reduction_size}u;
    }
    partials[tid] = sum;
    workgroupBarrier();

    // Step 2: tree-halving combine
    var stride = {reduction_size}u / 2u;
    loop {
        if (stride == 0u) { break; }
        if (tid < stride) {
            partials[tid] = partials[tid] + partials[tid + stride];
        }
        workgroupBarrier();
        stride = stride >> 1u;
    }

    if (tid == 0u) {
        out[0] = partials[0];
    }
}
"""


# ============================================================================
# Kernel Registry
# ============================================================================

MATRIX_MULTIPLY = "matrix_multiply"
MATRIX_ADD = "matrix_add"
MATRIX_SUBTRACT = "matrix_subtract"
MATRIX_TRANSPOSE = "matrix_transpose"
MATRIX_SCALAR_MULTIPLY = "matrix_scalar_multiply"
VECTOR_DOT_PRODUCT = "vector_dot_product"
VECTOR_ADD = "vector_add"

KERNELS = {
    spec.name: spec
    for spec in (
        KernelSpec(
            MATRIX_MULTIPLY, WGSL_MATRIX_MUL, ("read", "read", "read_write", "uniform")
        ),
        KernelSpec(MATRIX_ADD, WGSL_MATRIX_ADD, ("read", "read", "read_write")),
        KernelSpec(MATRIX_SUBTRACT, WGSL_MATRIX_SUB, ("read", "read", "read_write")),
        KernelSpec(MATRIX_TRANSPOSE, WGSL_TRANSPOSE, ("read", "read_write", "uniform")),
        KernelSpec(
            MATRIX_SCALAR_MULTIPLY, WGSL_SCALAR_MUL, ("read", "read_write", "uniform")
        ),
        KernelSpec(
            VECTOR_DOT_PRODUCT,
            WGSL_DOT_PRODUCT,
            ("read", "read", "read_write", "uniform"),
        ),
        # Same program as matrix_add, compiled as its own pipeline
        KernelSpec(VECTOR_ADD, WGSL_MATRIX_ADD, ("read", "read", "read_write")),
    )
}
