from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .config import load_policy_config
from .constants import STATE_DIR_NAME
from .task_engine.engine import LinkRejected, TaskEngine
from .task_engine.suggest import DEFAULT_SUGGESTION_LIMIT


def _configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
            "{message}"
        ),
    )


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _engine(project_dir: Optional[str]) -> TaskEngine:
    root = _resolve_project_dir(project_dir)
    return TaskEngine(root / STATE_DIR_NAME, load_policy_config(root))


def _emit(payload: dict[str, Any]) -> int:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')
    return 0


def _fail(message: str) -> int:
    sys.stderr.write(message + '\n')
    return 1


# ---------------------------------------------------------------------------
# task commands
# ---------------------------------------------------------------------------

def _task_create(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    try:
        task = engine.create_task(
            args.title,
            kind=args.kind,
            domain=args.domain,
            epic_id=args.epic,
            etiquettes=args.label,
            priority=args.priority,
        )
    except ValueError as exc:
        return _fail(str(exc))
    return _emit({'task': task.to_dict()})


def _task_list(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    tasks = engine.list_tasks(archived=args.archived)
    return _emit({'tasks': [task.to_dict() for task in tasks]})


def _task_archive(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    task = engine.archive_task(args.task_id, reason=args.reason)
    if task is None:
        return _fail(f"Task {args.task_id} not found")
    return _emit({'task': task.to_dict()})


def _task_restore(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    task = engine.restore_task(args.task_id)
    if task is None:
        return _fail(f"Task {args.task_id} not found")
    return _emit({'task': task.to_dict()})


# ---------------------------------------------------------------------------
# deps commands
# ---------------------------------------------------------------------------

def _deps_check(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    check = engine.check_link(args.blocker, args.blocked)
    _emit({'ok': check.ok, 'reason': check.reason})
    return 0 if check.ok else 1


def _deps_link(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    try:
        pair = engine.link_tasks(args.blocker, args.blocked)
    except LinkRejected as exc:
        logger.warning("Link rejected: {}", exc.reason)
        return _fail(str(exc))
    return _emit({'blocker': pair.a.to_dict(), 'blocked': pair.b.to_dict()})


def _deps_unlink(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    if not engine.unlink_tasks(args.blocker, args.blocked):
        return _fail(f"Neither {args.blocker} nor {args.blocked} exists")
    return _emit({'unlinked': [args.blocker, args.blocked]})


def _deps_suggest(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    try:
        tasks = engine.suggest_links(args.task_id, limit=args.limit)
    except ValueError as exc:
        return _fail(str(exc))
    return _emit({'suggestions': [task.to_dict() for task in tasks]})


def _deps_candidates(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    mode = 'depends_on' if args.mode == 'depends-on' else 'blocks'
    try:
        tasks = engine.link_candidates(args.task_id, mode=mode, query=args.query)
    except ValueError as exc:
        return _fail(str(exc))
    return _emit({'candidates': [task.to_dict() for task in tasks]})


def _deps_graph(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    return _emit({'graph': engine.get_dependency_graph(args.task_id)})


def _server(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Task planner CLI')
    parser.add_argument('--project-dir', default=None, help='Target project directory (default: current working directory)')
    parser.add_argument('--log-level', default='WARNING', help='Log level (default: WARNING)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the web server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.add_argument('--reload', action='store_true')
    server.set_defaults(func=_server)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('title')
    tcreate.add_argument('--kind', default=None)
    tcreate.add_argument('--domain', default=None)
    tcreate.add_argument('--epic', default=None)
    tcreate.add_argument('--label', action='append', default=[])
    tcreate.add_argument('--priority', default=None, choices=['low', 'medium', 'high'])
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List tasks')
    archived = tlist.add_mutually_exclusive_group()
    archived.add_argument('--archived', dest='archived', action='store_const', const=True, default=None)
    archived.add_argument('--active', dest='archived', action='store_const', const=False)
    tlist.set_defaults(func=_task_list)
    tarchive = task_sub.add_parser('archive', help='Archive a task')
    tarchive.add_argument('task_id')
    tarchive.add_argument('--reason', default=None)
    tarchive.set_defaults(func=_task_archive)
    trestore = task_sub.add_parser('restore', help='Restore an archived task')
    trestore.add_argument('task_id')
    trestore.set_defaults(func=_task_restore)

    deps = subparsers.add_parser('deps', help='Manage task dependencies')
    deps_sub = deps.add_subparsers(dest='deps_cmd', required=True)
    dcheck = deps_sub.add_parser('check', help='Check whether BLOCKER may block BLOCKED')
    dcheck.add_argument('blocker')
    dcheck.add_argument('blocked')
    dcheck.set_defaults(func=_deps_check)
    dlink = deps_sub.add_parser('link', help='Make BLOCKER block BLOCKED')
    dlink.add_argument('blocker')
    dlink.add_argument('blocked')
    dlink.set_defaults(func=_deps_link)
    dunlink = deps_sub.add_parser('unlink', help='Remove BLOCKER -> BLOCKED')
    dunlink.add_argument('blocker')
    dunlink.add_argument('blocked')
    dunlink.set_defaults(func=_deps_unlink)
    dsuggest = deps_sub.add_parser('suggest', help='Suggest tasks to block')
    dsuggest.add_argument('task_id')
    dsuggest.add_argument('--limit', default=DEFAULT_SUGGESTION_LIMIT, type=int)
    dsuggest.set_defaults(func=_deps_suggest)
    dcand = deps_sub.add_parser('candidates', help='List linkable tasks')
    dcand.add_argument('task_id')
    dcand.add_argument('--mode', default='blocks', choices=['blocks', 'depends-on'])
    dcand.add_argument('--query', default='')
    dcand.set_defaults(func=_deps_candidates)
    dgraph = deps_sub.add_parser('graph', help='Show the dependency graph')
    dgraph.add_argument('task_id', nargs='?', default=None)
    dgraph.set_defaults(func=_deps_graph)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == '__main__':
    raise SystemExit(main())
