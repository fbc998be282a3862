"""
Graceful Shutdown Manager for the event worker.
Handles SIGTERM/SIGINT and runs cleanup callbacks in registration order.
"""

import asyncio
import signal
from typing import Awaitable, Callable, List, Optional, Union

from tasktracker.utility.logging_client import logger

CleanupCallback = Callable[[], Union[None, Awaitable[None]]]


class ShutdownManager:
    """
    Manages graceful shutdown of worker components.

    Features:
    - Signal handlers (SIGTERM/SIGINT) that trigger shutdown once
    - Ordered cleanup callbacks (processor stop, then connection close)
    - Cleanup failures are logged and never abort the remaining steps
    """

    def __init__(self) -> None:
        self._shutdown_requested = False
        self._cleanup_callbacks: List[CleanupCallback] = []
        self._done = asyncio.Event()

    @property
    def is_shutting_down(self) -> bool:
        """Check if shutdown was requested."""
        return self._shutdown_requested

    def register_cleanup(self, callback: CleanupCallback) -> None:
        """Register cleanup callback to run on shutdown."""
        self._cleanup_callbacks.append(callback)

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        loop = loop or asyncio.get_running_loop()

        def signal_handler(sig: signal.Signals) -> None:
            logger.info(f"Received signal {sig.name}", component="signal")
            loop.create_task(self.initiate_shutdown(sig))

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    async def initiate_shutdown(self, sig: Optional[signal.Signals] = None) -> None:
        """Initiate graceful shutdown sequence."""
        if self._shutdown_requested:
            logger.warning("Shutdown already in progress", component="shutdown")
            return

        self._shutdown_requested = True
        signal_name = sig.name if sig else "MANUAL"
        logger.info(f"Graceful shutdown initiated (signal: {signal_name})", component="shutdown")

        await self._run_cleanup_callbacks()

        logger.info("Graceful shutdown completed", component="shutdown")
        self._done.set()

    async def wait(self) -> None:
        """Block until shutdown has completed."""
        await self._done.wait()

    async def _run_cleanup_callbacks(self) -> None:
        """Execute all registered cleanup callbacks."""
        logger.info(
            f"Running {len(self._cleanup_callbacks)} cleanup callbacks",
            component="shutdown",
        )

        for i, callback in enumerate(self._cleanup_callbacks, 1):
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
                logger.info(f"Cleanup callback {i} completed", component="shutdown")
            except Exception as e:
                logger.error(f"Cleanup callback {i} failed: {e}", component="shutdown")
