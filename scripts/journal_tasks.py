from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

import httpx

SERVICE_TOKEN_HEADER = "X-Calmdown-Service-Token"


def _load_dotenv(path: Path) -> None:
    if not path.is_file():
        return
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :].strip()
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key or key in os.environ:
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ[key] = value


class TaskServiceClient:
    def __init__(
        self,
        base_url: str,
        service_token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {SERVICE_TOKEN_HEADER: service_token} if service_token else {}
        self._base_url = base_url.rstrip("/")
        self._http = httpx.Client(timeout=30.0, headers=headers, transport=transport)

    def close(self) -> None:
        self._http.close()

    def call_tool(self, name: str, args: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._http.post(f"{self._base_url}/tool:{name}", json=args)
        except httpx.HTTPError as exc:
            return {
                "ok": False,
                "error": {
                    "code": "CONNECTION_ERROR",
                    "message": str(exc),
                    "details": {},
                },
            }
        try:
            return response.json()
        except ValueError:
            return {
                "ok": False,
                "error": {
                    "code": "NON_JSON_RESPONSE",
                    "message": f"Non-JSON response ({response.status_code}).",
                    "details": {},
                },
            }


def _format_tasks(data: dict[str, Any]) -> str:
    lines = []
    for task in data.get("tasks", []):
        lines.append(
            f"[P{task['priority']} D{task['difficulty']}] {task['text']}"
            f"  ({task['dueDescription']})  {task['path']}:{task['line'] + 1}"
        )
    lines.append(f"{data.get('count', 0)} open tasks")
    return "\n".join(lines)


def _format_rollover(data: dict[str, Any]) -> str:
    if data["status"] == "nothing_to_roll":
        return "No past uncompleted tasks found to roll over."
    lines = [f"Rolled {data['rolledCount']} tasks into {data['targetNote']}."]
    for path, reason in data.get("failedFiles", {}).items():
        lines.append(f"NOT UPDATED: {path} ({reason})")
    for path in data.get("cancelledFiles", []):
        lines.append(f"CANCELLED: {path}")
    for unmarked in data.get("unmarkedTasks", []):
        lines.append(
            f"NOT MARKED: {unmarked['path']}:{unmarked['line'] + 1} {unmarked['text']}"
        )
    for stale in data.get("staleTasks", []):
        lines.append(f"STALE: {stale['path']}:{stale['line'] + 1} {stale['text']}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Work with tasks in journal notes through the task service."
    )
    parser.add_argument(
        "--base-url",
        default=os.environ.get("CALMDOWN_BASE_URL", "http://127.0.0.1:8000"),
        help="Task service base URL (default: env CALMDOWN_BASE_URL).",
    )
    parser.add_argument(
        "--output",
        choices=["human", "json"],
        default="human",
        help="Output format (default: human).",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    open_cmd = subcommands.add_parser("open", help="List open tasks.")
    open_cmd.add_argument("--query", help="Only tasks whose text contains this.")
    open_cmd.add_argument("--sort", choices=["priority", "difficulty", "date"])

    subcommands.add_parser("refresh", help="Rescan the journal now.")

    toggle_cmd = subcommands.add_parser("toggle", help="Toggle the marker on a line.")
    toggle_cmd.add_argument("path", help="Journal-relative note path.")
    toggle_cmd.add_argument("line", type=int, help="Zero-based line number.")

    subcommands.add_parser("roll", help="Roll past unfinished tasks into today's note.")

    note_cmd = subcommands.add_parser("note", help="Create the note for a date.")
    note_cmd.add_argument("date", nargs="?", help="ISO date, default today.")
    return parser


def run(args: argparse.Namespace, client: TaskServiceClient) -> int:
    if args.command == "open":
        tool_args: dict[str, Any] = {}
        if args.query:
            tool_args["query"] = args.query
        if args.sort:
            tool_args["sort"] = args.sort
        response = client.call_tool("list_open_tasks", tool_args)
        formatter = _format_tasks
    elif args.command == "refresh":
        response = client.call_tool("refresh_tasks", {})
        formatter = lambda data: f"{data['count']} open tasks in {data['notes']} notes"
    elif args.command == "toggle":
        response = client.call_tool("toggle_task", {"path": args.path, "line": args.line})
        formatter = lambda data: data["after"]
    elif args.command == "roll":
        response = client.call_tool("roll_tasks", {})
        formatter = _format_rollover
    else:
        response = client.call_tool("ensure_note", {"date": args.date} if args.date else {})
        formatter = lambda data: data["path"]

    if args.output == "json":
        print(json.dumps(response, indent=2))
    elif response.get("ok"):
        print(formatter(response["data"]))
    else:
        error = response.get("error", {})
        print(f"ERROR: {error.get('code')}: {error.get('message')}", file=sys.stderr)

    if not response.get("ok"):
        return 1
    if args.command == "roll" and response["data"]["status"] == "partial":
        return 3
    return 0


def main(argv: list[str] | None = None) -> int:
    _load_dotenv(Path(".env"))
    args = build_parser().parse_args(argv)
    client = TaskServiceClient(args.base_url, os.environ.get("CALMDOWN_SERVICE_TOKEN"))
    try:
        return run(args, client)
    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(main())
