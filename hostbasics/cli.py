"""Command line entry point: prints the host and network identity report."""

import argparse
import logging
import platform
import sys
import threading
from typing import List, Optional

import requests
from rich.console import Console

from hostbasics import REPO_URL, __version__, i18n
from hostbasics.config import LANGUAGES, Settings
from hostbasics.logs import configure_logging
from hostbasics.network import network_check
from hostbasics.network.precheck import check_public_access, check_type_for
from hostbasics.system import check_system_info, select_provider

logger = logging.getLogger(__name__)

HIT_URL = ("https://hits.spiritlhl.net/basics.svg?action=hit&title=Hits&title_bg=%23555555"
           "&count_bg=%230eecf8&edge_flat=false")
SEPARATOR = "-" * 50


def send_hit(timeout: float = 5.0) -> None:
    try:
        requests.get(HIT_URL, timeout=timeout)
    except requests.RequestException as exc:
        logger.debug("hit counter: %s", exc)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hostbasics", description="Basic host hardware and network identity report.")
    parser.add_argument("-v", action="version", version=__version__, help="Show version")
    parser.add_argument("-l", dest="language", type=str.lower, choices=LANGUAGES, default="zh",
                        help="Set language (en or zh)")
    parser.add_argument("-log", "-e", dest="enable_logging", action="store_true", help="Enable logging")
    return parser


def build_report(settings: Settings) -> str:
    provider = select_provider()
    access = check_public_access(settings.precheck_timeout)
    ip_info = ""
    if check_type := check_type_for(access):
        ip_info = network_check(check_type, settings.language, settings, provider)
    res = check_system_info(settings.language, settings, provider, access)
    return (res + ip_info).replace("\n\n", "\n")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.enable_logging)
    settings = Settings.from_env(language=args.language, enable_logging=args.enable_logging)

    if settings.send_hit:
        threading.Thread(target=send_hit, daemon=True).start()

    # Plain output: the label column must not be reflowed or colored
    console = Console(markup=False, highlight=False, emoji=False, soft_wrap=True)
    console.print(f"Repo: {REPO_URL}")
    report = build_report(settings)
    console.print(SEPARATOR)
    console.print(report, end="")
    console.print(SEPARATOR)

    if platform.system() in ("Windows", "Darwin"):
        console.print(i18n.message("press_enter", settings.language))
        try:
            input()
        except EOFError:
            pass
    return 0


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n[INFO] Aborted by user.")
        sys.exit(130)
