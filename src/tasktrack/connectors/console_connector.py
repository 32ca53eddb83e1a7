# src/tasktrack/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_tasks
from ..core.state import AppState
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt(state: AppState) -> str:
    user = state.engine.current_user
    return f"[{user.username if user else '?'}] >>> "


class StdinReader:
    """
    Reads console lines on a daemon thread, one line per `readline` call.

    A cancelled `readline` returns immediately; the thread stays parked in
    input() and does not hold up interpreter exit.
    """

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._wanted = threading.Event()
        self._prompt = ""
        self._thread = threading.Thread(target=self._run, name="console-stdin", daemon=True)

    def _deliver(self, line: str | None) -> None:
        assert self._loop is not None
        # The loop may already be closed when a line arrives during shutdown.
        with contextlib.suppress(RuntimeError):
            self._loop.call_soon_threadsafe(self._queue.put_nowait, line)

    def _run(self) -> None:
        while True:
            self._wanted.wait()
            self._wanted.clear()
            try:
                line: str | None = input(self._prompt)
            except EOFError:
                line = None
            self._deliver(line)
            if line is None:
                return

    async def readline(self, prompt: str = "") -> str | None:
        """Next input line, or None at end of input."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
            self._thread.start()
        self._prompt = prompt
        self._wanted.set()
        return await self._queue.get()


async def run_console_loop(state: AppState, reader: StdinReader | None = None) -> None:
    """
    Interactive REPL. Lines starting with "/" are commands; any other text is
    added as a task for the current user. Newly overdue tasks are announced
    as soon as the view notices them.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a task title to add it. Use /help for commands. Use /exit to quit.\n")

    def on_overdue(tasks: tuple[Task, ...]) -> None:
        if tasks:
            _print_ts("Overdue:\n" + render_tasks(tasks, state.engine.state.now))

    reader = reader or StdinReader()
    unsubscribe = state.engine.subscribe("overdue_tasks", on_overdue)
    try:
        while True:
            raw = await reader.readline(_prompt(state))
            if raw is None:
                logger.info("Console EOF received, exiting.")
                break
            line = raw.strip()

            if not line:
                continue

            if line.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            reply = await command_registry.handle(state, line)
            if reply is None:
                reply = await command_registry.handle(state, "/add " + line)
            if reply:
                print(reply)
    finally:
        unsubscribe()
