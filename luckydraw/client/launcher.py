"""Command-line launcher for the lucky draw server, player and admin tools."""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path
from typing import Any

from luckydraw.backend.config import load_settings
from luckydraw.backend.errors import LuckyDrawError
from luckydraw.backend.export import format_money
from luckydraw.backend.log import setup_logging

from .api_client import DEFAULT_SERVER, LuckyDrawClient
from .session import AdminConsole, PlayerSession


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lucky draw launcher")
    parser.add_argument("--server", default=DEFAULT_SERVER)
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="run the API server with settings from the environment")
    commands.add_parser("state", help="print the boxes and member results")

    watch = commands.add_parser("watch", help="print the board every poll interval")
    watch.add_argument("--interval", type=float, default=None)

    draw = commands.add_parser("draw", help="log in as a member and open one box")
    draw.add_argument("--member", required=True)
    draw.add_argument("--password", required=True)
    draw.add_argument("--box", type=int, required=True)

    stats = commands.add_parser("stats", help="print session statistics")
    stats.add_argument("--admin-password", required=True)

    export = commands.add_parser("export", help="write the draw log as CSV")
    export.add_argument("--admin-password", required=True)
    export.add_argument("--output", default="-")

    reset = commands.add_parser("reset", help="discard every draw and start a new session")
    reset.add_argument("--admin-password", required=True)
    reset.add_argument("--pin", required=True)
    reset.add_argument("--confirm", required=True)
    return parser.parse_args(argv)


def render_board(state: dict[str, Any]) -> str:
    lines = []
    for box in state["boxes"]:
        if box["openedBy"]:
            lines.append(f"#{box['id']:>2}  {box['openedBy']}  {format_money(box['reward'])}")
        else:
            lines.append(f"#{box['id']:>2}  closed")
    lines.append("")
    for member, reward in state["memberResults"].items():
        lines.append(f"{member}: {format_money(reward) if reward is not None else 'not drawn yet'}")
    return "\n".join(lines)


def run_server() -> None:
    import uvicorn

    settings = load_settings()
    setup_logging(settings.log_level)
    uvicorn.run("luckydraw.backend.api:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def run_command(args: argparse.Namespace, client: LuckyDrawClient) -> int:
    if args.command == "state":
        print(render_board(client.get_state()))
        return 0

    if args.command == "watch":
        interval = args.interval if args.interval is not None else load_settings().poll_interval
        session = PlayerSession(client, poll_interval=interval)
        stop_event = threading.Event()
        try:
            session.watch(stop_event, on_update=lambda state: print(render_board(state), end="\n\n"))
        except KeyboardInterrupt:
            stop_event.set()
        return 0

    if args.command == "draw":
        session = PlayerSession(client)
        session.login(member=args.member, password=args.password)
        session.open_box(args.box)
        print(f"Congratulations {session.member}, you won {format_money(session.take_reward())}!")
        return 0

    admin = AdminConsole(client)
    admin.login(args.admin_password)
    if args.command == "stats":
        stats = admin.stats()
        print(f"Members drawn: {stats['playedCount']}/{stats['memberCount']}")
        print(f"Boxes opened: {stats['openedCount']}, remaining: {stats['remainingCount']}")
        print(f"Total paid: {format_money(stats['totalPaid'])}")
        return 0
    if args.command == "export":
        csv_text = admin.export_csv()
        if args.output == "-":
            sys.stdout.write(csv_text)
        else:
            Path(args.output).write_text(csv_text, encoding="utf-8")
            print(f"Wrote {args.output}")
        return 0
    if args.command == "reset":
        admin.reset(pin=args.pin, confirmation=args.confirm)
        print("A new session has started.")
        return 0
    return 2


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "serve":
        run_server()
        return 0

    client = LuckyDrawClient(base_url=args.server)
    try:
        return run_command(args, client)
    except LuckyDrawError as exc:
        print(exc.message, file=sys.stderr)
        return 1
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
