"""Reader for leftwm's state socket.

leftwm accepts any number of readers on $XDG_RUNTIME_DIR/leftwm/current_state.sock
and writes the full state as one JSON object per line whenever it changes.
"""

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, Union

from .errors import SocketConnectError

logger = logging.getLogger(__name__)

# A single state line grows with the number of tags and viewports.
LINE_LIMIT = 1024 * 1024


async def read_state_lines(socket_path: Union[str, Path]) -> AsyncIterator[str]:
    """Connect once and yield state lines until leftwm closes the socket.

    Args:
        socket_path: Path to leftwm's state socket

    Yields:
        One JSON document per line, without the trailing newline

    Raises:
        SocketConnectError: If the socket is missing or refuses the connection
    """
    socket_path = Path(socket_path)
    if not socket_path.exists():
        raise SocketConnectError(str(socket_path), "socket not found", missing=True)

    try:
        reader, writer = await asyncio.open_unix_connection(str(socket_path), limit=LINE_LIMIT)
    except OSError as e:
        raise SocketConnectError(str(socket_path), str(e)) from e

    logger.info(f"Connected to leftwm state socket {socket_path}")

    try:
        while True:
            try:
                line = await reader.readline()
            except ValueError as e:
                # readline() discards the oversized chunk before raising
                logger.error(f"Skipping oversized state line: {e}")
                continue
            if not line:
                logger.info("leftwm closed the state socket")
                break

            text = line.decode("utf-8", errors="replace").strip()
            if text:
                yield text
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error closing state socket: {e}")
