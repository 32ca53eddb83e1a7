# src/tasktrack/cli/commands.py

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import date

from ..core.errors import NotFound, TaskTrackError
from ..core.state import AppState
from ..tasks.task_models import Task, TaskPriority, TaskStatistics
from ..tasks.time_classifier import (
    create_timestamp,
    days_until,
    end_of_day,
    end_of_tomorrow,
    format_datetime,
    is_overdue,
)

CommandHandler = Callable[[AppState, list[str]], str | Awaitable[str]]

logger = logging.getLogger(__name__)

_OPTION_RE = re.compile(r"^(p|c|due|at|d)=(.*)$")


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            reply = handler(state, args)
            if inspect.isawaitable(reply):
                reply = await reply
            return reply
        except NotFound as e:
            return str(e)
        except TaskTrackError as e:
            logger.exception("Command /%s failed", name)
            return f"Command failed: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----

def render_task(task: Task, now: int) -> str:
    check = "x" if task.is_completed else " "
    line = f"#{task.id} [{check}] {task.priority.value:<6} {task.title}"
    if task.category:
        line += f" ({task.category})"
    if task.deadline is not None:
        line += f" due {format_datetime(task.deadline)}"
        if not task.is_completed and is_overdue(task.deadline, now):
            line += " OVERDUE"
        else:
            line += f" (in {days_until(task.deadline, now)}d)"
    return f"{line} user={task.user_id}"


def render_tasks(tasks: tuple[Task, ...], now: int, empty: str = "No tasks.") -> str:
    if not tasks:
        return empty
    return "\n".join(render_task(t, now) for t in tasks)


def render_statistics(stats: TaskStatistics) -> str:
    return (
        "Statistics:\n"
        f"  total: {stats.total}\n"
        f"  completed: {stats.completed}\n"
        f"  pending: {stats.pending}\n"
        f"  overdue: {stats.overdue}\n"
        f"  due today: {stats.due_today}\n"
        f"  high priority: {stats.high_priority}\n"
        f"  completion: {stats.completion_rate:.0%}"
    )


# ---- parsing ----

def _parse_int(raw: str, what: str) -> int:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        raise NotFound(f"Not a valid {what} id: {raw}") from None


def parse_deadline(raw: str, now: int, at: str | None = None) -> int:
    """today | tomorrow | YYYY-MM-DD | DD.MM.YYYY, optionally with at=HH:MM."""
    value = raw.strip().lower()
    if value in ("today", "tomorrow") and at is None:
        return end_of_day(now) if value == "today" else end_of_tomorrow(now)

    if value == "today":
        day = date.fromtimestamp(now / 1000)
    elif value == "tomorrow":
        day = date.fromordinal(date.fromtimestamp(now / 1000).toordinal() + 1)
    elif "." in value:
        d, m, y = (int(p) for p in value.split("."))
        day = date(y, m, d)
    else:
        day = date.fromisoformat(value)

    hour, minute = 23, 59
    if at:
        h, _, mi = at.partition(":")
        hour, minute = int(h), int(mi or 0)
    return create_timestamp(day.year, day.month, day.day, hour, minute)


# ---- handlers ----

def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    engine = state.engine
    prefs = engine.prefs
    header = "Tasks"
    if prefs.is_filtered:
        active = []
        if prefs.show_only_pending:
            active.append("pending")
        if prefs.filter_category:
            active.append(f"category={prefs.filter_category}")
        if prefs.has_user_filter:
            active.append(f"user={prefs.filter_user_id}")
        header += f" [{', '.join(active)}]"
    return f"{header}:\n" + render_tasks(engine.displayed_tasks, engine.state.now)


def cmd_all(state: AppState, args: list[str]) -> str:
    return render_tasks(state.engine.all_tasks, state.engine.state.now)


def cmd_overdue(state: AppState, args: list[str]) -> str:
    return render_tasks(state.engine.overdue_tasks, state.engine.state.now, "Nothing overdue.")


def cmd_today(state: AppState, args: list[str]) -> str:
    return render_tasks(state.engine.today_tasks, state.engine.state.now, "Nothing due today.")


def cmd_stats(state: AppState, args: list[str]) -> str:
    return render_statistics(state.engine.task_statistics)


def cmd_categories(state: AppState, args: list[str]) -> str:
    categories = state.engine.categories
    return "Categories: " + (", ".join(categories) if categories else "(none)")


async def cmd_add(state: AppState, args: list[str]) -> str:
    engine = state.engine
    options: dict[str, str] = {}
    words: list[str] = []
    for arg in args:
        m = _OPTION_RE.match(arg)
        if m:
            options[m.group(1)] = m.group(2)
        else:
            words.append(arg)

    title = " ".join(words).strip()
    if not title:
        return "Usage: /add <title> [p=low|medium|high|urgent] [c=category] [due=YYYY-MM-DD|today|tomorrow] [at=HH:MM]"

    deadline = None
    if "due" in options:
        try:
            deadline = parse_deadline(options["due"], engine.state.now, options.get("at"))
        except ValueError:
            return f"Cannot parse deadline: {options['due']}"

    task_id = await engine.insert_task(
        title,
        description=options.get("d", "").replace("_", " "),
        deadline=deadline,
        priority=TaskPriority.from_db(options.get("p")),
        category=options.get("c", ""),
    )
    return f"Task #{task_id} added."


async def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <task id>"
    task = state.engine.find_task(_parse_int(args[0], "task"))
    updated = await state.engine.toggle_task_completion(task)
    return f"Task #{task.id} marked {'done' if updated.is_completed else 'open'}."


async def cmd_priority(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /prio <task id> <low|medium|high|urgent>"
    engine = state.engine
    task = engine.find_task(_parse_int(args[0], "task"))
    priority = TaskPriority.from_db(args[1])
    await engine.update_task(replace(task, priority=priority))
    return f"Task #{task.id} priority set to {priority.value}."


async def cmd_remove(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <task id>"
    task = state.engine.find_task(_parse_int(args[0], "task"))
    await state.engine.delete_task(task)
    return f"Task #{task.id} deleted."


async def cmd_pending(state: AppState, args: list[str]) -> str:
    await state.engine.toggle_show_only_pending()
    return "Show only pending: " + ("on" if state.engine.prefs.show_only_pending else "off")


async def cmd_category(state: AppState, args: list[str]) -> str:
    category = " ".join(args).strip()
    await state.engine.set_filter_category("" if category == "-" else category)
    return f"Category filter: {category if category and category != '-' else '(none)'}"


async def cmd_user_filter(state: AppState, args: list[str]) -> str:
    if not args or args[0] == "-":
        await state.engine.set_filter_user_id(None)
        return "User filter: (none)"
    user_id = _parse_int(args[0], "user")
    await state.engine.set_filter_user_id(user_id)
    return f"User filter: {user_id}"


async def cmd_clear(state: AppState, args: list[str]) -> str:
    await state.engine.clear_filters()
    return "Filters cleared."


def cmd_users(state: AppState, args: list[str]) -> str:
    engine = state.engine
    current = engine.current_user
    lines = []
    for entry in engine.users_with_tasks:
        mark = "*" if current is not None and entry.user.id == current.id else " "
        lines.append(f"{mark} {entry.user.id}: {entry.user.username} ({len(entry.tasks)} tasks)")
    return "\n".join(lines) if lines else "No users."


async def cmd_user_add(state: AppState, args: list[str]) -> str:
    username = " ".join(args).strip()
    if not username:
        return "Usage: /useradd <name>"
    user = await state.engine.create_user(username)
    return f"User {user.id} ({user.username}) created and selected."


async def cmd_use(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /use <user id>"
    user = state.engine.find_user(_parse_int(args[0], "user"))
    await state.engine.switch_to_user(user.id)
    return f"Current user: {user.username}"


async def cmd_user_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /userdel <user id>"
    user = state.engine.find_user(_parse_int(args[0], "user"))
    await state.engine.delete_user(user)
    current = state.engine.current_user
    return f"User {user.id} deleted. Current user: {current.username if current else '?'}"


registry.register("help", cmd_help, "show this help", aliases=["h", "?"])
registry.register("tasks", cmd_list, "list tasks with active filters", aliases=["ls"])
registry.register("all", cmd_all, "list all tasks, ignoring filters")
registry.register("overdue", cmd_overdue, "list overdue open tasks")
registry.register("today", cmd_today, "list open tasks due today")
registry.register("stats", cmd_stats, "task statistics")
registry.register("categories", cmd_categories, "list categories")
registry.register("add", cmd_add, "add a task: /add <title> [p=..] [c=..] [due=..] [at=HH:MM]")
registry.register("done", cmd_done, "toggle completion: /done <id>")
registry.register("prio", cmd_priority, "change priority: /prio <id> <priority>")
registry.register("rm", cmd_remove, "delete a task: /rm <id>")
registry.register("pending", cmd_pending, "toggle show-only-pending filter")
registry.register("category", cmd_category, "filter by category (/category - to clear)")
registry.register("userfilter", cmd_user_filter, "filter by user id (/userfilter - to clear)")
registry.register("clear", cmd_clear, "clear all filters")
registry.register("users", cmd_users, "list users")
registry.register("useradd", cmd_user_add, "create a user and switch to it")
registry.register("use", cmd_use, "switch current user: /use <id>")
registry.register("userdel", cmd_user_delete, "delete a user and its tasks: /userdel <id>")
