"""Entry points serving a session over stdio or TCP"""

import asyncio
import logging

from ..config import Config
from ..util import close_logger, open_logger
from .session import Session
from .transport import open_stdio


async def serve_stdio(config: Config, logger: logging.Logger) -> int:
    """Serve the client attached to stdin/stdout."""
    reader, writer = await open_stdio()
    session = Session(reader, writer, config=config, logger=logger)
    return await session.run()


async def serve_tcp(config: Config, logger: logging.Logger, host: str, port: int) -> int:
    """Accept a single client on a TCP port and serve it."""
    loop = asyncio.get_running_loop()
    result: asyncio.Future = loop.create_future()

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        if result.done():
            writer.close()
            return
        peer = writer.get_extra_info("peername")
        logger.info(f"Client connected from {peer}")
        session = Session(reader, writer, config=config, logger=logger)
        try:
            code = await session.run()
        except Exception as e:
            if not result.done():
                result.set_exception(e)
        else:
            if not result.done():
                result.set_result(code)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    server = await asyncio.start_server(handle, host, port)
    logger.info(f"Listening on {host}:{port}")
    async with server:
        return await result


def start_server(
    config: Config,
    host: str = "127.0.0.1",
    port: int | None = None,
) -> int:
    """Run the language server until the client exits. Returns the exit status."""
    logger = open_logger("wordguard", file=config.logging.file, level=config.logging.level)
    logger.info("Starting language server")
    try:
        if port is None:
            return asyncio.run(serve_stdio(config, logger))
        return asyncio.run(serve_tcp(config, logger, host, port))
    finally:
        logger.info("Language server stopped")
        close_logger(logger)
