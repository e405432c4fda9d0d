"""Command-line surface over the thread repository and conversation controller."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
import json
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table
from rich.text import Text

from .config import ensure_config_dir, load_config, model_options
from .controller import ConversationController
from .gateway import CompletionGateway
from .logging_utils import configure_logging
from .models import Message, Role, Thread
from .persistence import JsonDocumentStore
from .repository import ThreadRepository


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codebase-chat",
        description="Codebase chat - threaded conversations with a remote completion endpoint",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")

    commands = parser.add_subparsers(dest="command")

    threads = commands.add_parser("threads", help="List threads, newest first")
    threads.add_argument("--filter", default="", help="Only titles containing TEXT")

    new = commands.add_parser("new", help="Create an empty thread")
    new.add_argument("--title", default=None)

    show = commands.add_parser("show", help="Print a thread transcript")
    show.add_argument("thread_id")

    send = commands.add_parser("send", help="Send a message and wait for the reply")
    send.add_argument("text")
    send.add_argument("--thread", dest="thread_id", default=None)
    send.add_argument("--model", default=None)
    send.add_argument(
        "--show-payload",
        action="store_true",
        help="Print the outbound request payload before sending",
    )

    rename = commands.add_parser("rename", help="Rename a thread")
    rename.add_argument("thread_id")
    rename.add_argument("title")

    delete = commands.add_parser("delete", help="Delete a thread")
    delete.add_argument("thread_id")

    search = commands.add_parser("search", help="Search every stored message")
    search.add_argument("query")

    commands.add_parser("models", help="List selectable models")
    return parser


def _message_footer(message: Message) -> str:
    parts: list[str] = []
    if message.role is Role.ASSISTANT and message.time_taken:
        parts.append(f"{message.time_taken:.1f}s")
    if message.model:
        parts.append(f"Model: {message.model}")
    return " | ".join(parts)


def render_thread(console: Console, thread: Thread) -> None:
    """Print a thread transcript with markdown-rendered messages."""
    console.print(Text(thread.title, style="bold"))
    if not thread.messages:
        console.print(Text("No messages yet", style="dim"))
    for message in thread.messages:
        label = "You" if message.role is Role.USER else "Assistant"
        console.print(Text(label, style="bold cyan" if message.role is Role.USER else "bold green"))
        console.print(Markdown(message.content))
        footer = _message_footer(message)
        if footer:
            console.print(Text(footer, style="dim"))
        console.print()


def _render_threads(console: Console, threads: list[Thread], query: str) -> None:
    if not threads:
        if query:
            console.print(Text(f"No threads match \"{query}\"", style="dim"))
        else:
            console.print("No conversations yet", style="dim")
        return
    table = Table("id", "title", "messages", "updated")
    for thread in threads:
        table.add_row(thread.id, thread.title, str(len(thread.messages)), thread.updated_at[:19])
    console.print(table)


async def _run_send(
    controller: ConversationController,
    console: Console,
    args: argparse.Namespace,
) -> int:
    model = args.model or controller.selected_model
    if args.show_payload:
        thread = controller.repository.get_thread(args.thread_id) if args.thread_id else None
        history = thread.context() if thread is not None else []
        history.append({"role": Role.USER.value, "content": args.text.strip()})
        payload = controller.gateway.build_payload(history, model)
        console.print_json(json.dumps(payload, ensure_ascii=False))

    task = controller.start_send(args.thread_id, args.text, model)
    if task is None:
        console.print("Nothing to send.", style="yellow")
        return 1
    known = (
        args.thread_id is not None
        and controller.repository.get_thread(args.thread_id) is not None
    )
    thread_id = args.thread_id if known else controller.active_thread_id
    with console.status(f"Waiting for {model}..."):
        result = await task

    if result is None:
        error = controller.error_for(thread_id) if thread_id else None
        console.print(Text(error or "Failed to get response", style="bold red"))
        return 1
    reply = result.messages[-1]
    console.print(Markdown(reply.content))
    footer = _message_footer(reply)
    if footer:
        console.print(Text(footer, style="dim"))
    console.print(Text(f"thread {result.id}", style="dim"))
    return 0


async def _run(args: argparse.Namespace, config: dict[str, Any], console: Console) -> int:
    repository = ThreadRepository(
        JsonDocumentStore(config["persistence"]["directory"]),
        key=config["persistence"]["storage_key"],
    )
    endpoint = config["endpoint"]
    async with CompletionGateway(
        url=endpoint["url"], api_key=endpoint["api_key"], timeout=endpoint["timeout"]
    ) as gateway:
        controller = ConversationController(repository, gateway, selected_model=endpoint["model"])
        controller.load()

        try:
            if args.command == "send":
                return await _run_send(controller, console, args)
        finally:
            await controller.aclose()

        if args.command == "threads":
            _render_threads(console, controller.filter_threads(args.filter), args.filter)
        elif args.command == "new":
            thread = controller.new_thread()
            if args.title and args.title.strip():
                thread = controller.rename_thread(thread.id, args.title) or thread
            console.print(thread.id)
        elif args.command == "show":
            thread = repository.get_thread(args.thread_id)
            if thread is None:
                console.print(Text(f"Thread {args.thread_id} not found.", style="red"))
                return 1
            render_thread(console, thread)
        elif args.command == "rename":
            try:
                renamed = controller.rename_thread(args.thread_id, args.title)
            except ValueError as exc:
                console.print(Text(str(exc), style="red"))
                return 1
            if renamed is None:
                console.print(Text(f"Thread {args.thread_id} not found.", style="red"))
                return 1
        elif args.command == "delete":
            remaining = controller.delete_thread(args.thread_id)
            console.print(f"{len(remaining)} thread(s) remaining")
        elif args.command == "search":
            results = controller.search(args.query)
            if results is None:
                console.print("Enter a search query.", style="dim")
                return 0
            console.print(f"{len(results)} result(s) found")
            for result in results:
                console.print(Text(f"{result.thread_title} ({result.thread_id})", style="bold"))
                console.print(Text(f"{result.role.value}: {result.preview}"))
        elif args.command == "models":
            for option in model_options(config):
                marker = "*" if option.id == controller.selected_model else " "
                console.print(f"{marker} {option.id}  {option.name}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Load configuration, configure logging, and dispatch a subcommand."""
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = Console()

    if args.version:
        try:
            version = metadata.version("codebase-chat")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        console.print(f"codebase-chat {version}")
        return 0

    if args.command is None:
        parser.print_help()
        return 2

    if args.config is None:
        ensure_config_dir()
    config = load_config(config_path=args.config)
    configure_logging(config["logging"])
    return asyncio.run(_run(args, config, console))
