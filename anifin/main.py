"""
Entry point for AniFin.

``serve`` runs the JSON API with a background drain thread;
``download`` runs one URL through the queue in the foreground;
``info`` prints the resolved episode information.
"""

import argparse
import json
import signal
import sys
from typing import Any, Dict, List, Optional

from .config import ConfigError, load_config, validate_config
from .constants import APP_VERSION
from .download_manager import DownloadManager
from .downloaders import AniworldDownloader
from .events import DOWNLOAD_COMPLETE, DOWNLOAD_ERROR, LOG
from .exceptions import AniFinError
from .models import DownloadOptions
from .providers import VoeProvider
from .utils import setup_logger

DEFAULT_DOWNLOADER = "aniworld"


def build_manager(config: Dict[str, Any], *, auto_start: bool = True) -> DownloadManager:
    """Wire the default providers and downloaders into a manager."""
    downloader = AniworldDownloader(
        config,
        providers=[VoeProvider()],
        default_provider=config["app"].get("default_provider"),
    )
    manager = DownloadManager(default_downloader=DEFAULT_DOWNLOADER, auto_start=auto_start)
    manager.register_downloader(DEFAULT_DOWNLOADER, downloader)
    return manager


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="anifin", description="Aniworld download queue")
    parser.add_argument("--env-file", help="Path to the .env file (default: ./.env)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    for name, help_text in (
        ("download", "Download an episode, season or series URL"),
        ("info", "Show episode information"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("url")
        cmd.add_argument("--provider")
        cmd.add_argument("--language")
        if name == "download":
            cmd.add_argument("--quality")
            cmd.add_argument("--format", choices=["mp4", "mkv", "mp3"])
            cmd.add_argument("--output-path")
            cmd.add_argument("--filename")

    return parser.parse_args(argv)


def _run_download(manager: DownloadManager, args: argparse.Namespace) -> int:
    failures = []
    manager.on(LOG, lambda e: print(f"[{e['level'].upper()}] {e['message']}"))
    manager.on(DOWNLOAD_ERROR, lambda e: failures.append(e))
    manager.on(DOWNLOAD_COMPLETE, lambda e: print(f"Saved: {e['result']}"))

    def _interrupt(signum, frame):
        manager.clear()
        manager.cancel_current()

    signal.signal(signal.SIGINT, _interrupt)

    manager.enqueue(
        args.url,
        DownloadOptions(
            provider=args.provider,
            language=args.language,
            quality=args.quality,
            format=args.format,
            output_path=args.output_path,
            filename=args.filename,
        ),
    )
    manager.drain(DEFAULT_DOWNLOADER)

    for failure in failures:
        print(f"Failed: {failure['url']}: {failure['error']}", file=sys.stderr)
    return 1 if failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        config = load_config(args.env_file)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    if args.debug:
        config["logging"]["debug"] = True

    logger = setup_logger("anifin", "anifin.log", debug=config["logging"]["debug"])
    for problem in validate_config(config):
        logger.warning("Config: %s", problem)

    if args.command == "serve":
        from .web_server import DownloadServer

        manager = build_manager(config)
        DownloadServer(config, manager, env_path=args.env_file).run(host=args.host, port=args.port)
        return 0

    manager = build_manager(config, auto_start=False)

    if args.command == "info":
        downloader = manager.get_downloader(DEFAULT_DOWNLOADER)
        try:
            info = downloader.get_video_info(args.url, args.provider, args.language)
        except AniFinError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(json.dumps(info.to_dict(), indent=2))
        return 0

    return _run_download(manager, args)


if __name__ == "__main__":
    sys.exit(main())
