"""Pytest configuration and fixtures for leftwm-xmobar tests."""

import asyncio
import json
import sys
from pathlib import Path

import pytest

# Make the package importable without installation
package_root = Path(__file__).parent.parent
if str(package_root) not in sys.path:
    sys.path.insert(0, str(package_root))

from leftwm_xmobar.config import BarConfig, TagColors  # noqa: E402


class FakeStdin:
    """Stand-in for a subprocess stdin StreamWriter."""

    def __init__(self, fail_with=None):
        self.data = b""
        self.closed = False
        self.fail_with = fail_with

    def write(self, data: bytes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.data += data

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True

    @property
    def lines(self):
        return self.data.decode().splitlines()


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process."""

    _next_pid = 1000

    def __init__(self, fail_with=None, exit_on_terminate=True):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.returncode = None
        self.stdin = FakeStdin(fail_with)
        self.terminated = False
        self.killed = False
        self.exit_on_terminate = exit_on_terminate

    def terminate(self) -> None:
        self.terminated = True
        if self.exit_on_terminate:
            self.returncode = -15

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    async def wait(self) -> int:
        while self.returncode is None:
            await asyncio.sleep(0.001)
        return self.returncode


@pytest.fixture
def sample_config(tmp_path):
    """Bars mode configuration with fixed paths."""
    return BarConfig(
        socket_path=tmp_path / "current_state.sock",
        xmobar_config=Path("/themes/current/xmobar-config.hs"),
        colors=TagColors()
    )


@pytest.fixture
def single_viewport_state():
    """One 1920px viewport showing tag 1, tag 1 focused."""
    return {
        "viewports": [{"x": 0, "y": 0, "w": 1920, "h": 1080, "tags": ["1"], "layout": "MainAndVertStack"}],
        "desktop_names": ["1", "2"],
        "active_desktop": ["1"],
        "window_title": "term",
        "working_tags": ["1"]
    }


@pytest.fixture
def dual_viewport_state():
    """Two viewports; tag 3 shown on viewport 1 and focused."""
    return {
        "viewports": [
            {"x": 0, "y": 0, "w": 1920, "h": 1080, "tags": ["1"]},
            {"x": 1920, "y": 0, "w": 2560, "h": 1440, "tags": ["3"]}
        ],
        "desktop_names": ["1", "2", "3", "4"],
        "active_desktop": ["3"],
        "window_title": "firefox"
    }


@pytest.fixture
def state_line():
    """Serialize a state dict the way leftwm writes it to the socket."""
    def _line(state: dict) -> str:
        return json.dumps(state)
    return _line


@pytest.fixture
def fake_process_factory():
    """Factory producing FakeProcess instances and remembering them."""
    created = []

    def _factory(*args, **kwargs):
        process = FakeProcess()
        process.args = args
        created.append(process)
        return process

    _factory.created = created
    return _factory
