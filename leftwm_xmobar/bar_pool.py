"""Pool of xmobar processes, one per leftwm viewport.

A bar is placed on every viewport rather than every screen: a viewport can
cover part of a monitor or span several, so the geometry comes from leftwm,
not from xmobar's own screen detection.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import BarConfig
from .errors import BarSpawnError, BarWriteError
from .models import Viewport

logger = logging.getLogger(__name__)


def geometry_argument(viewport: Viewport, height: int = 15) -> str:
    """xmobar -p position argument for a viewport.

    >>> geometry_argument(Viewport(x=0, y=0, w=1920))
    'Static { xpos=0, ypos=0, width=1920, height=15 }'
    """
    return f"Static {{ xpos={viewport.x}, ypos={viewport.y}, width={viewport.w}, height={height} }}"


@dataclass
class BarSlot:
    """A pool entry: the viewport a bar was started for and its process."""

    viewport: Viewport
    process: Optional[asyncio.subprocess.Process] = None
    respawned: bool = False
    dropped: bool = False

    @property
    def alive(self) -> bool:
        return self.process is not None and self.process.returncode is None


class BarPool:
    """Owns the xmobar processes and their stdin streams.

    The slot list is filled once by ensure_started() and keeps its length
    until stop(); a failed bar leaves an empty slot so indices stay aligned
    with leftwm's viewport order.
    """

    def __init__(self, config: BarConfig):
        """Initialize pool.

        Args:
            config: Control program configuration (xmobar command, config file, bar height)
        """
        self.config = config
        self.slots: List[BarSlot] = []
        self._last_viewport_count: Optional[int] = None

    def __len__(self) -> int:
        return len(self.slots)

    @property
    def started(self) -> bool:
        return bool(self.slots)

    @property
    def exhausted(self) -> bool:
        """True once every bar has been dropped."""
        return self.started and all(slot.dropped for slot in self.slots)

    def command_for(self, viewport: Viewport) -> List[str]:
        return [
            self.config.xmobar_command,
            "-p", geometry_argument(viewport, self.config.bar_height),
            str(self.config.xmobar_config),
        ]

    async def _spawn(self, index: int, viewport: Viewport) -> asyncio.subprocess.Process:
        """Start one xmobar process.

        Raises:
            BarSpawnError: If the process cannot be started
        """
        command = self.command_for(viewport)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise BarSpawnError(index, command, str(e)) from e

        logger.info(f"Started bar {index} (pid {process.pid}): {command[2]}")
        return process

    async def ensure_started(self, viewports: Sequence[Viewport]) -> None:
        """Start one bar per viewport on the first call; later calls only check the count.

        Args:
            viewports: Viewports of the current snapshot, in leftwm order
        """
        count = len(viewports)
        if self.started:
            if count == self._last_viewport_count:
                if count != len(self.slots):
                    logger.debug(f"Still {count} viewports for {len(self.slots)} bars")
                return
            if count == len(self.slots):
                logger.info(f"Viewport count is back to {count}")
            else:
                logger.warning(
                    f"Viewport count changed to {count}; "
                    f"keeping {len(self.slots)} bars started for the first snapshot"
                )
            self._last_viewport_count = count
            return

        self._last_viewport_count = count
        for index, viewport in enumerate(viewports):
            slot = BarSlot(viewport=viewport)
            try:
                slot.process = await self._spawn(index, viewport)
            except BarSpawnError as e:
                logger.error(f"{e.message} ({e.suggestion})")
                slot.dropped = True
            self.slots.append(slot)

    async def _write_process(self, index: int, process: asyncio.subprocess.Process, data: bytes) -> None:
        """Write to one process.

        Raises:
            BarWriteError: If the bar has exited or its pipe is closed
        """
        if process.returncode is not None or process.stdin is None:
            raise BarWriteError(index, f"process exited with status {process.returncode}")
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise BarWriteError(index, str(e)) from e

    async def write(self, index: int, line: str) -> bool:
        """Send one markup line to bar `index`.

        A bar that fails is respawned once; if it fails again its slot is
        dropped and further writes to it are ignored.

        Returns:
            True if the line was delivered
        """
        slot = self.slots[index]
        if slot.dropped or slot.process is None:
            return False

        data = (line + "\n").encode("utf-8")
        try:
            await self._write_process(index, slot.process, data)
            return True
        except BarWriteError as e:
            logger.error(e.message)

        if slot.respawned:
            logger.error(f"Bar {index} failed again after respawn, dropping it")
            self._drop(slot)
            return False

        slot.respawned = True
        try:
            slot.process = await self._spawn(index, slot.viewport)
            await self._write_process(index, slot.process, data)
            logger.info(f"Respawned bar {index}")
            return True
        except (BarSpawnError, BarWriteError) as e:
            logger.error(f"Respawn of bar {index} failed, dropping it: {e.message}")
            self._drop(slot)
            return False

    def _drop(self, slot: BarSlot) -> None:
        slot.dropped = True
        if slot.alive:
            try:
                slot.process.kill()
            except ProcessLookupError:
                pass

    async def _stop_process(self, index: int, process: asyncio.subprocess.Process) -> None:
        if process.stdin is not None:
            process.stdin.close()
        if process.returncode is not None:
            return
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self.config.stop_timeout)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            logger.warning(f"Bar {index} did not exit after SIGTERM, killing it")
            process.kill()
            await process.wait()
        logger.debug(f"Bar {index} exited with status {process.returncode}")

    async def stop(self) -> None:
        """Terminate every bar process (SIGTERM, then SIGKILL after a timeout)."""
        await asyncio.gather(*(
            self._stop_process(index, slot.process)
            for index, slot in enumerate(self.slots)
            if slot.process is not None
        ))
        logger.info(f"Stopped {len(self.slots)} bars")
