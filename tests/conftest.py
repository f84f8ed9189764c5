import sys
from pathlib import Path
import pytest


def pytest_configure(config):
    # Ensure src/ is importable without installing the package
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


class FakeRuntime:
    """Stands in for the CUDA runtime; hands out increasing fake addresses."""

    def __init__(self):
        self.next_ptr = 0x10000
        self.calls = []
        self.fail_malloc = False
        self.fail_free = False
        self.mismatch = False
        self.null_device = False

    def _raise(self, name):
        from cudautils.core.cuda import CUDAError

        raise CUDAError(2, f"{name}: out of memory")

    def malloc(self, size):
        self.calls.append(("malloc", size))
        if self.fail_malloc:
            self._raise("cudaMalloc")
        ptr = self.next_ptr
        self.next_ptr += 0x1000
        return ptr

    def free(self, ptr):
        self.calls.append(("free", ptr))
        if self.fail_free:
            self._raise("cudaFree")

    def alloc_mapped(self, size):
        self.calls.append(("alloc_mapped", size))
        if self.fail_malloc:
            self._raise("cudaHostAlloc")
        ptr = self.next_ptr
        self.next_ptr += 0x1000
        if self.null_device:
            return ptr, 0
        return ptr, ptr + 0x10 if self.mismatch else ptr

    def free_host(self, ptr):
        self.calls.append(("free_host", ptr))
        if self.fail_free:
            self._raise("cudaFreeHost")

    def synchronize(self):
        self.calls.append(("synchronize",))

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)


class FakeFontLibrary:
    """Stands in for the native font engine."""

    def __init__(self, fail_create=False):
        self.fail_create = fail_create
        self.created = []
        self.destroyed = []
        self.overlays = []

    def create(self, bitmap):
        if self.fail_create:
            return None
        engine = 0xF000 + len(self.created)
        self.created.append((engine, bitmap))
        return engine

    def render_overlay(self, engine, input, output, width, height, text, x, y, rgba):
        self.overlays.append(
            dict(
                engine=engine,
                input=input,
                output=output,
                width=width,
                height=height,
                text=text,
                x=x,
                y=y,
                rgba=rgba,
            )
        )

    def destroy(self, engine):
        self.destroyed.append(engine)


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def fontlib():
    return FakeFontLibrary()
