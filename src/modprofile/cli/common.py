import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console

from ..context import AppContext
from ..domain.errors import ModProfileError

console = Console()


def run_with_context(action: Callable[[AppContext], Awaitable[Any]]) -> Any:
    """
    run an async action against a fresh context, mapping domain errors to exit code 1.

    args:
        action: coroutine function receiving the started context
    """
    async def runner():
        async with AppContext() as ctx:
            return await action(ctx)

    try:
        return asyncio.run(runner())
    except ModProfileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def format_duration(ms: int) -> str:
    seconds = max(0, ms) // 1000
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_timestamp(ms: Optional[int]) -> str:
    if ms is None:
        return "never"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")
