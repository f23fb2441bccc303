"""Dispatch loop: state lines in, markup lines out."""

import asyncio
import logging
import sys
from typing import AsyncIterable, Optional, Sequence, TextIO

from .errors import SnapshotDecodeError
from .markup import MarkupFormatter
from .models import Snapshot, Viewport

logger = logging.getLogger(__name__)


class StdoutOutput:
    """Single output writing to our own stdout, for one externally managed bar."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout
        self.closed = False

    def __len__(self) -> int:
        return 1

    async def ensure_started(self, viewports: Sequence[Viewport]) -> None:
        return None

    @property
    def exhausted(self) -> bool:
        return self.closed

    async def write(self, index: int, line: str) -> bool:
        if self.closed:
            return False
        try:
            self.stream.write(line + "\n")
            self.stream.flush()
            return True
        except BrokenPipeError as e:
            self.closed = True
            logger.error(f"stdout closed: {e}")
            return False

    async def stop(self) -> None:
        return None


class Dispatcher:
    """Feeds every decoded snapshot to every output.

    Outputs are a BarPool (bars mode) or a StdoutOutput (pipe mode); both
    provide ensure_started(), write(), stop(), len() and exhausted.
    """

    def __init__(self, formatter: MarkupFormatter, output):
        """Initialize dispatcher.

        Args:
            formatter: Markup formatter
            output: BarPool or StdoutOutput
        """
        self.formatter = formatter
        self.output = output
        self.dispatched = 0
        self.skipped = 0

    async def dispatch(self, snapshot: Snapshot) -> None:
        """Start outputs if needed, then write one line per output concurrently."""
        await self.output.ensure_started(snapshot.viewports)
        await asyncio.gather(*(
            self.output.write(index, self.formatter.format(index, snapshot))
            for index in range(len(self.output))
        ))
        self.dispatched += 1

    async def run(self, lines: AsyncIterable[str]) -> int:
        """Process state lines until the stream ends.

        Lines that fail to decode are logged and skipped. The loop also ends
        once the output has no bar left to write to.

        Returns:
            Number of snapshots dispatched
        """
        async for line in lines:
            try:
                snapshot = Snapshot.from_line(line)
            except SnapshotDecodeError as e:
                self.skipped += 1
                logger.error(f"Skipping state line: {e.message}")
                logger.debug(f"Rejected line: {line!r} {e.to_dict()}")
                continue

            await self.dispatch(snapshot)
            if self.output.exhausted:
                logger.error("No output left to write to, stopping")
                break

        logger.info(f"State stream ended after {self.dispatched} snapshots ({self.skipped} skipped)")
        return self.dispatched
