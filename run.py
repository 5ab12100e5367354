import sys
import logging
import argparse
import signal
import threading

from linkpulse import create_app
from linkpulse.client import BackendClient
from linkpulse.config import ClientConfig, Config

log = logging.getLogger('werkzeug')
log.disabled = True

logger = logging.getLogger("linkpulse")


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def serve(args) -> None:
    cli = sys.modules.get('flask.cli')
    if cli is not None:
        cli.show_server_banner = lambda *x: None
    app = create_app()
    print(f"LinkPulse starting on http://{args.host}:{args.port}", flush=True)
    app.run(host=args.host, port=args.port, debug=False)


def _print_bookmarks(state) -> None:
    if not state.authenticated:
        return
    print(f"-- {len(state.bookmarks)} bookmark(s) for {state.identity.username}", flush=True)
    for bookmark in state.bookmarks:
        print(f"   [{bookmark.id}] {bookmark.title} <{bookmark.url}>", flush=True)


def watch(args) -> None:
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())

    last_seen = {"bookmarks": None}

    def on_state_change(state):
        if state.bookmarks != last_seen["bookmarks"]:
            last_seen["bookmarks"] = state.bookmarks
            _print_bookmarks(state)
        if state.notice:
            logger.warning(state.notice)

    with BackendClient(args.base_url) as backend:
        controller = backend.controller(on_state_change=on_state_change)
        with controller:
            controller.sign_in("password", username=args.username, password=args.password)
            stop.wait()


def main() -> None:
    _configure_logging()
    p = argparse.ArgumentParser(prog="linkpulse")
    sub = p.add_subparsers(dest="command")

    serve_p = sub.add_parser("serve", help="run the LinkPulse backend")
    serve_p.add_argument("--host", default="0.0.0.0")
    serve_p.add_argument("--port", type=int, default=8072)
    serve_p.set_defaults(func=serve)

    watch_p = sub.add_parser("watch", help="print a user's bookmarks as they change")
    watch_p.add_argument("--base-url", default=ClientConfig.API_BASE_URL)
    watch_p.add_argument("--username", required=True)
    watch_p.add_argument("--password", required=True)
    watch_p.set_defaults(func=watch)

    args = p.parse_args()
    if args.command is None:
        args = p.parse_args(["serve"])
    args.func(args)


if __name__ == "__main__":
    main()
