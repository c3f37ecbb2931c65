"""Device context: adapter, device, queue and compiled pipelines.

A WgpuContext is created explicitly and passed to every operation; there is
no module-level device singleton. All kernels are compiled when the context
is built and reused for its lifetime.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional, Tuple

import wgpu
import wgpu.backends.wgpu_native  # noqa: F401

from wgpu_matrix.errors import DeviceUnavailable, KernelCompilationFailed
from wgpu_matrix.kernels import KERNELS
from wgpu_matrix.wgpu_config import DispatchConfig, WorkgroupSizes, select_workgroup_sizes

logger = logging.getLogger(__name__)

_BINDING_TYPES = {
    "read": "read-only-storage",
    "read_write": "storage",
    "uniform": "uniform",
}


@dataclass(frozen=True)
class Pipeline:
    """A compiled compute pipeline and the bind group layout it expects."""

    name: str
    pipeline: Any
    bind_group_layout: Any
    bindings: Tuple[str, ...]


def _request_device(power_preference):
    """Request the default adapter and a device from it."""
    try:
        adapter = wgpu.gpu.request_adapter_sync(power_preference=power_preference)
    except Exception as e:
        raise DeviceUnavailable(f"adapter request failed: {e}") from e
    if adapter is None:
        raise DeviceUnavailable()
    try:
        device = adapter.request_device_sync()
    except Exception as e:
        raise DeviceUnavailable(f"device request failed: {e}") from e
    return adapter, device


class WgpuContext:
    """Owns the wgpu device, its queue and one pipeline per operation.

    Args:
        power_preference: "high-performance" or "low-power"; overrides
            config.power_preference when given
        config: DispatchConfig bounding the execution geometry
        device: an already-created device; when omitted the default
            adapter is requested and the context owns the device

    Raises:
        DeviceUnavailable: no adapter or device could be obtained
        KernelCompilationFailed: a kernel failed to compile
    """

    def __init__(
        self,
        power_preference: Optional[str] = None,
        config: Optional[DispatchConfig] = None,
        device=None,
    ):
        self.config = config or DispatchConfig()
        self.power_preference = power_preference or self.config.power_preference
        owns_device = device is None
        if owns_device:
            self.adapter, device = _request_device(self.power_preference)
        else:
            self.adapter = getattr(device, "adapter", None)
        self._device = device
        self._queue = device.queue
        self._sizes = select_workgroup_sizes(getattr(device, "limits", None), self.config)

        try:
            self._pipelines = MappingProxyType(
                {name: self._compile(spec) for name, spec in KERNELS.items()}
            )
        except KernelCompilationFailed:
            if owns_device:
                device.destroy()
                self._device = None
            raise
        logger.info(
            "wgpu context ready on %s (linear=%d, tile=%dx%d, reduction=%d)",
            self.adapter_summary,
            self._sizes.linear,
            self._sizes.tile_x,
            self._sizes.tile_y,
            self._sizes.reduction,
        )

    def _compile(self, spec):
        device = self._device
        entries = []
        for i, access in enumerate(spec.bindings):
            entries.append({
                "binding": i,
                "visibility": wgpu.ShaderStage.COMPUTE,
                "buffer": {
                    "type": _BINDING_TYPES[access],
                    "has_dynamic_offset": False,
                },
            })

        try:
            shader_module = device.create_shader_module(
                label=spec.name, code=spec.render(self._sizes)
            )
            bind_group_layout = device.create_bind_group_layout(entries=entries)
            pipeline_layout = device.create_pipeline_layout(
                bind_group_layouts=[bind_group_layout]
            )
            pipeline = device.create_compute_pipeline(
                label=spec.name,
                layout=pipeline_layout,
                compute={"module": shader_module, "entry_point": "main"},
            )
        except wgpu.GPUError as e:
            raise KernelCompilationFailed(spec.name, str(e)) from e

        logger.debug("compiled pipeline %s", spec.name)
        return Pipeline(spec.name, pipeline, bind_group_layout, spec.bindings)

    # ---- Read-only accessors ----
    @property
    def device(self):
        return self._device

    @property
    def queue(self):
        return self._queue

    @property
    def pipelines(self):
        """Read-only mapping of operation name to Pipeline."""
        return self._pipelines

    @property
    def workgroup_sizes(self) -> WorkgroupSizes:
        return self._sizes

    @property
    def adapter_info(self):
        """Adapter description (vendor, architecture, device, backend...).

        Empty when the context was built around an injected device.
        """
        if self.adapter is None:
            return {}
        return dict(self.adapter.info)

    @property
    def adapter_summary(self):
        if self.adapter is None:
            return "<injected device>"
        return getattr(self.adapter, "summary", repr(self.adapter))

    def pipeline(self, name):
        """Return the compiled Pipeline for an operation name."""
        return self._pipelines[name]

    # ---- Lifetime ----
    def destroy(self):
        """Release the device. The context is unusable afterwards."""
        if self._device is not None:
            self._device.destroy()
            self._device = None
            logger.debug("wgpu device destroyed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
        return False
