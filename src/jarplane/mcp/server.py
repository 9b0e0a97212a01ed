"""Stdio transport for the protocol dispatcher.

Reads one JSON request per line from stdin and writes one JSON response per
line to stdout. Requests are handled one at a time in arrival order. Logs
never go to stdout.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from jarplane.config.constants import JSONRPC_VERSION, MAX_LINE_BYTES
from jarplane.mcp.context import AppContext
from jarplane.mcp.dispatcher import ProtocolDispatcher
from jarplane.mcp.errors import InternalProtocolError

if TYPE_CHECKING:
    from jarplane.config.models import JarPlaneConfig

log = structlog.get_logger(__name__)

WriteFn = Callable[[str], None]


async def _next_line(reader: asyncio.StreamReader, shutdown: asyncio.Event) -> bytes | None:
    """Wait for the next input line, or None once shutdown is requested."""
    read_task = asyncio.ensure_future(reader.readline())
    stop_task = asyncio.ensure_future(shutdown.wait())
    try:
        done, _ = await asyncio.wait({read_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop_task.cancel()
    if read_task not in done:
        read_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await read_task
        return None
    return read_task.result()


async def serve(
    dispatcher: ProtocolDispatcher,
    reader: asyncio.StreamReader,
    write: WriteFn,
    shutdown: asyncio.Event,
) -> int:
    """Process requests until EOF or shutdown. Returns the number of responses written."""
    responses = 0
    while not shutdown.is_set():
        try:
            line = await _next_line(reader, shutdown)
        except ValueError as e:
            # Line longer than the reader limit; the reader has discarded it
            log.warning("request_line_too_long", error=str(e), limit=MAX_LINE_BYTES)
            error = InternalProtocolError("Internal error: request line exceeds size limit")
            write(json.dumps({"jsonrpc": JSONRPC_VERSION, "id": None, "error": error.to_error_object()}) + "\n")
            responses += 1
            continue

        if line is None:
            log.info("serve_shutdown_requested")
            break
        if not line:
            log.info("serve_input_closed")
            break

        response = await dispatcher.handle_line(line)
        if response is not None:
            write(json.dumps(response, ensure_ascii=False) + "\n")
            responses += 1
    return responses


def _stdout_writer(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


async def _run(config: JarPlaneConfig) -> None:
    context = AppContext.create(config)
    dispatcher = ProtocolDispatcher(context)

    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    def signal_handler() -> None:
        log.info("shutdown_signal_received")
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        reader = asyncio.StreamReader(limit=MAX_LINE_BYTES)
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
        log.info("server_started", repository=str(config.repository_path))
        responses = await serve(dispatcher, reader, _stdout_writer, shutdown)
        log.info("server_stopped", responses=responses)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        context.close()


def run_server(config: JarPlaneConfig) -> None:
    """Run the stdio server until stdin closes or a shutdown signal arrives."""
    asyncio.run(_run(config))
