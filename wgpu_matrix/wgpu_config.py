"""Dispatch configuration and workgroup-size selection.

Workgroup sizes are fixed per context: they are derived once from the device
limits when the context is created and baked into the compiled kernels.
"""

from dataclasses import dataclass

# WebGPU default limits, used when a device does not report a limit
DEFAULT_LIMITS = {
    "max-compute-invocations-per-workgroup": 256,
    "max-compute-workgroup-size-x": 256,
    "max-compute-workgroup-size-y": 256,
    "max-compute-workgroups-per-dimension": 65535,
}


@dataclass(frozen=True)
class DispatchConfig:
    """Upper bounds for execution geometry.

    Attributes:
        power_preference: adapter preference passed to wgpu
        max_linear_workgroup: invocations per workgroup for 1D elementwise kernels
        tile_size: edge of the square workgroup used by 2D kernels
        max_reduction_workgroup: invocations in the single dot-product workgroup
    """

    power_preference: str = "high-performance"
    max_linear_workgroup: int = 256
    tile_size: int = 16
    max_reduction_workgroup: int = 256


@dataclass(frozen=True)
class WorkgroupSizes:
    """Workgroup sizes chosen for one device."""

    linear: int
    tile_x: int
    tile_y: int
    reduction: int
    max_workgroups_per_dimension: int = 65535


def _limit(limits, name):
    value = None
    if limits is not None:
        value = limits.get(name)
    return int(value) if value else DEFAULT_LIMITS[name]


def largest_power_of_two(n):
    """Largest power of two <= n (n >= 1)."""
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    return 1 << (int(n).bit_length() - 1)


def select_workgroup_sizes(limits, config=None):
    """Clamp the configured sizes against the device limits.

    Args:
        limits: mapping of wgpu limit names (e.g. device.limits) or None
        config: DispatchConfig, defaults to DispatchConfig()

    Returns:
        WorkgroupSizes
    """
    config = config or DispatchConfig()
    max_invocations = _limit(limits, "max-compute-invocations-per-workgroup")
    max_x = _limit(limits, "max-compute-workgroup-size-x")
    max_y = _limit(limits, "max-compute-workgroup-size-y")

    linear = max(1, min(config.max_linear_workgroup, max_invocations, max_x))

    tile_x = max(1, min(config.tile_size, max_x))
    tile_y = max(1, min(config.tile_size, max_y, max_invocations // tile_x))

    # Tree-halving in the dot-product kernel only covers power-of-two groups
    reduction = largest_power_of_two(
        max(1, min(config.max_reduction_workgroup, max_invocations, max_x))
    )

    return WorkgroupSizes(
        linear=linear,
        tile_x=tile_x,
        tile_y=tile_y,
        reduction=reduction,
        max_workgroups_per_dimension=_limit(
            limits, "max-compute-workgroups-per-dimension"
        ),
    )
