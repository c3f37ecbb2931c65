"""Execution geometry for compute dispatches.

Pure host-side arithmetic, no device access. A Geometry records the logical
grid (one invocation per output element), the workgroup size compiled into
the kernel and the workgroup counts passed to dispatch_workgroups().
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Geometry:
    grid: Tuple[int, int, int]
    workgroup_size: Tuple[int, int, int]
    workgroups: Tuple[int, int, int]
    # 2D only: number of x slices stacked along z
    x_slices: int = 1

    @property
    def invocations(self):
        """Total invocations launched, including bounds-checked padding."""
        total = 1
        for count, size in zip(self.workgroups, self.workgroup_size):
            total *= count * size
        return total


def ceil_div(a, b):
    return (a + b - 1) // b


def is_power_of_two(n):
    return n > 0 and (n & (n - 1)) == 0


def linear_geometry(count, group_size, max_per_dimension=65535):
    """One invocation per element for a flat array of `count` elements.

    Workgroup counts above `max_per_dimension` are folded into the y
    dimension; linear kernels rebuild the flat index from num_workgroups.
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    groups = ceil_div(count, group_size)
    if groups <= max_per_dimension:
        workgroups = (groups, 1, 1)
    else:
        workgroups = (max_per_dimension, ceil_div(groups, max_per_dimension), 1)
    return Geometry(
        grid=(count, 1, 1),
        workgroup_size=(group_size, 1, 1),
        workgroups=workgroups,
    )


def grid_2d_geometry(width, height, tile_x, tile_y, max_per_dimension=65535):
    """One invocation per (x, y) cell; x runs over columns, y over rows.

    Workgroup counts above `max_per_dimension` are split into slices stacked
    along z: slice z covers x block z % x_slices and y block z // x_slices.
    2D kernels rebuild column and row from num_workgroups and x_slices.
    """
    if width < 1 or height < 1:
        raise ValueError(f"grid extent must be >= 1, got {width}x{height}")
    groups_x = ceil_div(width, tile_x)
    groups_y = ceil_div(height, tile_y)
    x_slices = ceil_div(groups_x, max_per_dimension)
    y_slices = ceil_div(groups_y, max_per_dimension)
    return Geometry(
        grid=(width, height, 1),
        workgroup_size=(tile_x, tile_y, 1),
        workgroups=(
            min(groups_x, max_per_dimension),
            min(groups_y, max_per_dimension),
            x_slices * y_slices,
        ),
        x_slices=x_slices,
    )


def reduction_geometry(count, group_size):
    """A single workgroup of `group_size` invocations striding over `count`."""
    if not is_power_of_two(group_size):
        raise ValueError(
            f"reduction workgroup size must be a power of two, got {group_size}"
        )
    return Geometry(
        grid=(count, 1, 1),
        workgroup_size=(group_size, 1, 1),
        workgroups=(1, 1, 1),
    )
