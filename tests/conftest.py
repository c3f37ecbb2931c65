"""Shared fixtures: a real wgpu context (skipped without an adapter) and a
fake device that records what the dispatch layer asks of it."""

import numpy as np
import pytest
import wgpu

from wgpu_matrix import DeviceUnavailable, WgpuContext


# ============================================================================
# Real device
# ============================================================================

@pytest.fixture(scope="session")
def ctx():
    try:
        context = WgpuContext()
    except DeviceUnavailable as e:
        pytest.skip(f"no wgpu adapter: {e}")
    yield context
    context.destroy()


# ============================================================================
# Fake device
# ============================================================================

class FakeBuffer:
    def __init__(self, size, usage, data=None):
        self.size = size
        self.usage = usage
        self.data = bytes(data) if data is not None else bytes(size)
        self.destroyed = False

    def destroy(self):
        self.destroyed = True


class FakeComputePass:
    def __init__(self, device):
        self.device = device
        self.pipeline = None
        self.bind_group = None

    def set_pipeline(self, pipeline):
        self.pipeline = pipeline

    def set_bind_group(self, index, bind_group):
        self.bind_group = bind_group

    def dispatch_workgroups(self, x, y=1, z=1):
        self.device.dispatches.append({
            "pipeline": self.pipeline.label,
            "workgroups": (x, y, z),
            "entries": self.bind_group["entries"],
        })

    def end(self):
        pass


class FakeEncoder:
    def __init__(self, device):
        self.device = device

    def begin_compute_pass(self):
        return FakeComputePass(self.device)

    def finish(self):
        return self


class FakeQueue:
    def __init__(self, device):
        self.device = device
        self.submitted = 0
        self.waits = 0

    def submit(self, command_buffers):
        if self.device.fail_submit:
            raise wgpu.GPUValidationError("simulated submit failure")
        self.submitted += len(command_buffers)

    def on_submitted_work_done_sync(self):
        self.waits += 1

    def read_buffer(self, buffer):
        return memoryview(buffer.data)


class FakePipeline:
    def __init__(self, label):
        self.label = label


class FakeDevice:
    """Stands in for wgpu.GPUDevice; results read back as zeros."""

    def __init__(self, limits=None, fail_compile=None, fail_submit=False):
        self.limits = limits or {}
        self.fail_compile = fail_compile
        self.fail_submit = fail_submit
        self.queue = FakeQueue(self)
        self.buffers = []
        self.shaders = {}
        self.dispatches = []
        self.destroyed = False

    def create_shader_module(self, label="", code=""):
        if label == self.fail_compile:
            raise wgpu.GPUValidationError(f"simulated compile error in {label}")
        self.shaders[label] = code
        return object()

    def create_bind_group_layout(self, entries):
        return {"entries": entries}

    def create_pipeline_layout(self, bind_group_layouts):
        return bind_group_layouts

    def create_compute_pipeline(self, label="", layout=None, compute=None):
        return FakePipeline(label)

    def create_buffer_with_data(self, data, usage):
        buffer = FakeBuffer(len(data), usage, data)
        self.buffers.append(buffer)
        return buffer

    def create_buffer(self, size, usage):
        buffer = FakeBuffer(size, usage)
        self.buffers.append(buffer)
        return buffer

    def create_bind_group(self, layout, entries):
        return {"layout": layout, "entries": entries}

    def create_command_encoder(self):
        return FakeEncoder(self)

    def destroy(self):
        self.destroyed = True


class FakeAdapter:
    """Stands in for wgpu.GPUAdapter, handing out one FakeDevice."""

    summary = "Fake GPU (fake backend)"

    def __init__(self, device=None, fail_device=False):
        self.device = device or FakeDevice()
        self.fail_device = fail_device
        self.info = {"vendor": "fake", "device": "Fake GPU", "backend_type": "fake"}

    def request_device_sync(self, **kwargs):
        if self.fail_device:
            raise RuntimeError("simulated device request failure")
        return self.device


@pytest.fixture
def fake_device():
    return FakeDevice()


@pytest.fixture
def fake_ctx(fake_device):
    return WgpuContext(device=fake_device)


@pytest.fixture
def rng():
    return np.random.RandomState(42)
