"""CLI for marginalia - link annotation and find/replace over a note vault."""

import argparse
import asyncio
import json
import logging
import platform
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .core.annotate import extract_annotations
from .core.model import SearchOptions
from .core.ports import PersistenceError
from .core.segments import build_segments
from .core.utils import char_offset_to_column, char_offset_to_line, line_at
from .render import render_segments
from .runtime import Runtime, build_runtime
from .session import FindReplaceController


def _options(args: argparse.Namespace, rt: Runtime) -> SearchOptions:
    defaults = rt.search_options
    return SearchOptions(
        case_sensitive=args.case_sensitive or defaults.case_sensitive,
        whole_word=args.whole_word or defaults.whole_word,
    )


def _get_note(rt: Runtime, nid: str):
    note = rt.vault.get(nid)
    if note is None:
        print(f"Note {nid} not found", file=sys.stderr)
    return note


def cmd_ls(args: argparse.Namespace, rt: Runtime) -> int:
    """List note ids, optionally with titles."""
    ids = list(rt.vault.list_ids())

    if args.json:
        result = []
        for nid in ids:
            note = rt.vault.get(nid)
            result.append({"id": nid, "title": note.title if note else ""})
        print(json.dumps(result, indent=2))
    elif getattr(args, "with_titles", False):
        for nid in ids:
            note = rt.vault.get(nid)
            print(f"{nid}\t{note.title if note else ''}")
    else:
        for nid in ids:
            print(nid)

    return 0


def cmd_open(args: argparse.Namespace, rt: Runtime) -> int:
    """Print the raw note body to stdout."""
    note = _get_note(rt, args.id)
    if note is None:
        return 1
    print(note.content, end="" if note.content.endswith("\n") else "\n")
    return 0


def cmd_links(args: argparse.Namespace, rt: Runtime) -> int:
    """List [[links]] and URLs in a note."""
    note = _get_note(rt, args.id)
    if note is None:
        return 1

    spans = extract_annotations(note.content)
    rows = []
    for span in spans:
        row: dict[str, Any] = {
            "kind": span.kind,
            "start": span.start,
            "end": span.end,
            "line": char_offset_to_line(note.content, span.start),
            "payload": span.payload,
        }
        if span.kind == "link":
            row["target"] = rt.resolver.resolve(span.payload)
        rows.append(row)

    if args.json:
        print(json.dumps(rows, indent=2))
        return 0

    for row in rows:
        target = row.get("target")
        suffix = ""
        if row["kind"] == "link":
            suffix = f"\t-> {target}" if target else "\t(dead)"
        print(f"{row['line']}\t{row['kind']}\t{row['payload']}{suffix}")
    return 0


def cmd_find(args: argparse.Namespace, rt: Runtime) -> int:
    """Find occurrences of a literal query in a note."""
    note = _get_note(rt, args.id)
    if note is None:
        return 1

    controller = FindReplaceController(note, rt.store, cache=rt.cache, options=_options(args, rt))
    matches = controller.find(args.query)
    content = note.content

    if args.json:
        print(json.dumps([
            {
                "start": m.start,
                "length": m.length,
                "line": char_offset_to_line(content, m.start),
                "column": char_offset_to_column(content, m.start),
            }
            for m in matches
        ], indent=2))
        return 0 if matches else 1

    for m in matches:
        line = char_offset_to_line(content, m.start)
        col = char_offset_to_column(content, m.start)
        print(f"{line}:{col}\t{line_at(content, m.start)}")
    if not args.quiet:
        print(f"{len(matches)} match(es)", file=sys.stderr)
    return 0 if matches else 1


def cmd_show(args: argparse.Namespace, rt: Runtime) -> int:
    """Render a note with links, or with highlighted matches."""
    note = _get_note(rt, args.id)
    if note is None:
        return 1

    if args.find:
        controller = FindReplaceController(note, rt.store, cache=rt.cache, options=_options(args, rt))
        controller.find(args.find)
        for _ in range(max(0, args.current - 1)):
            controller.next()
        segments = controller.segments()
    else:
        segments = build_segments(note.content, extract_annotations(note.content))

    colors = rt.config.ui.colors and not args.no_color and sys.stdout.isatty()
    out = render_segments(segments, colors=colors)
    print(out, end="" if out.endswith("\n") else "\n")
    return 0


async def _replace(args: argparse.Namespace, rt: Runtime) -> int:
    note = await rt.notes.load(args.id)
    controller = FindReplaceController(note, rt.store, cache=rt.cache, options=_options(args, rt))
    matches = controller.find(args.query)
    if not matches:
        if not args.quiet:
            print(f"No matches for {args.query!r} in {args.id}", file=sys.stderr)
        return 1

    if args.all:
        count = await controller.replace_all(args.replacement)
    else:
        if args.nth < 1 or args.nth > len(matches):
            print(f"Match {args.nth} out of range (1-{len(matches)})", file=sys.stderr)
            return 1
        for _ in range(args.nth - 1):
            controller.next()
        count = int(await controller.replace(args.replacement))

    rt.resolver.invalidate()
    if not args.quiet:
        print(f"Replaced {count} occurrence(s) in {args.id}")
    return 0


def cmd_replace(args: argparse.Namespace, rt: Runtime) -> int:
    """Replace one occurrence (or all) of a query in a note."""
    try:
        return asyncio.run(_replace(args, rt))
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_backlinks(args: argparse.Namespace, rt: Runtime) -> int:
    """List notes that link to a note by its title."""
    note = _get_note(rt, args.id)
    if note is None:
        return 1

    ids = [nid for nid in rt.resolver.backlinks(note.title) if nid != note.id]
    if args.json:
        print(json.dumps(ids, indent=2))
    else:
        for nid in ids:
            print(nid)
    return 0


def cmd_watch(args: argparse.Namespace, rt: Runtime) -> int:
    """Watch vault for changes and report cache invalidations."""
    from .watch import watch_vault

    debounce_ms = args.debounce_ms or rt.config.watch.debounce_ms

    return watch_vault(
        rt,
        debounce_ms=debounce_ms,
        quiet=args.quiet,
        json_output=args.json,
    )


def cmd_serve(args: argparse.Namespace, rt: Runtime) -> int:
    """Start local JSON API server."""
    import uvicorn

    from .api.app import create_app, generate_token

    token_arg = getattr(args, "token", "auto")
    token = None

    if token_arg == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif token_arg == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
    else:
        token = token_arg

    app = create_app(rt, token=token, enable_cors=args.cors, watch=args.watch)

    print(f"Starting server on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")

    return 0


def _add_search_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-c", "--case-sensitive", dest="case_sensitive", action="store_true",
        help="Match case exactly",
    )
    p.add_argument(
        "-w", "--whole-word", dest="whole_word", action="store_true",
        help="Only match whole words",
    )


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="margin", description="Marginalia CLI"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"marginalia {__version__} (python {platform.python_version()}, {platform.system().lower()})",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/marginalia.toml, vault/marginalia.toml)",
    )
    parser.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Path to vault directory (overrides config)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages to stderr"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # ls command
    parser_ls = subparsers.add_parser("ls", help="List notes")
    parser_ls.add_argument(
        "--with-titles", dest="with_titles", action="store_true",
        help="Print id and title (tab-separated)"
    )

    # open command
    parser_open = subparsers.add_parser("open", help="Print raw note body to stdout")
    parser_open.add_argument("id", help="Note ID")

    # links command
    parser_links = subparsers.add_parser("links", help="List links and URLs in a note")
    parser_links.add_argument("id", help="Note ID")

    # find command
    parser_find = subparsers.add_parser("find", help="Find a literal query in a note")
    parser_find.add_argument("id", help="Note ID")
    parser_find.add_argument("query", help="Text to find")
    _add_search_flags(parser_find)

    # show command
    parser_show = subparsers.add_parser("show", help="Render a note for the terminal")
    parser_show.add_argument("id", help="Note ID")
    parser_show.add_argument("--find", help="Highlight matches of this query")
    parser_show.add_argument(
        "--current", type=int, default=1, help="Which match is current (default: 1)"
    )
    parser_show.add_argument(
        "--no-color", dest="no_color", action="store_true", help="Disable ANSI colors"
    )
    _add_search_flags(parser_show)

    # replace command
    parser_replace = subparsers.add_parser("replace", help="Replace a query in a note")
    parser_replace.add_argument("id", help="Note ID")
    parser_replace.add_argument("query", help="Text to find")
    parser_replace.add_argument("replacement", help="Replacement text")
    parser_replace.add_argument(
        "--nth", type=int, default=1, help="Replace the Nth match (default: 1)"
    )
    parser_replace.add_argument(
        "--all", action="store_true", help="Replace every match"
    )
    _add_search_flags(parser_replace)

    # backlinks command
    parser_backlinks = subparsers.add_parser("backlinks", help="Notes linking to a note")
    parser_backlinks.add_argument("id", help="Note ID")

    # watch command
    parser_watch = subparsers.add_parser("watch", help="Watch vault for changes")
    parser_watch.add_argument(
        "--debounce-ms", type=int, default=None,
        help="Debounce window in milliseconds (default: from config, 150)"
    )

    # serve command
    parser_serve = subparsers.add_parser("serve", help="Start local JSON API server")
    parser_serve.add_argument(
        "--host", default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser_serve.add_argument(
        "--port", type=int, default=8765,
        help="Port to bind to (default: 8765)"
    )
    parser_serve.add_argument(
        "--token", default="auto",
        help="Bearer token (auto|<string>|none, default: auto)"
    )
    parser_serve.add_argument(
        "--cors", action="store_true",
        help="Enable CORS (default: false)"
    )
    parser_serve.add_argument(
        "--watch", action="store_true",
        help="Invalidate cached notes when vault files change"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    rt = build_runtime(
        vault_path=args.vault,
        config_path=args.config,
    )

    handlers = {
        "ls": cmd_ls,
        "open": cmd_open,
        "links": cmd_links,
        "find": cmd_find,
        "show": cmd_show,
        "replace": cmd_replace,
        "backlinks": cmd_backlinks,
        "watch": cmd_watch,
        "serve": cmd_serve,
    }

    handler = handlers.get(args.cmd)
    if handler:
        try:
            exit_code = handler(args, rt)
            sys.exit(exit_code)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
