"""Command-line interface for the brandtheme project."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

from tqdm import tqdm

from .config import ExtractionSettings
from .crawl.fetch import ensure_http_scheme
from .errors import ThemeError
from .io.models import ThemeResult
from .io.outputs import css_declarations, theme_payload, write_theme
from .pipeline import ThemeExtractor

logger = logging.getLogger(__name__)

KINDS = ("image", "image-url", "website")


@dataclass(frozen=True, slots=True)
class Target:
    kind: str
    value: str


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for theme extraction."""
    parser = argparse.ArgumentParser(
        prog="brandtheme",
        description="Extract a brand palette and an accessible UI theme from an image or website.",
    )
    parser.add_argument(
        "--input",
        default=None,
        help=(
            "Path to a text file with one target per line. Lines may be prefixed with "
            "'image:', 'image-url:' or 'website:'; bare lines are treated as websites."
        ),
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Directory where <label>.theme.json files are written (default: print to stdout).",
    )
    parser.add_argument(
        "--css",
        action="store_true",
        help="Also emit the theme as CSS custom properties.",
    )
    parser.add_argument("--navigation-timeout", type=float, default=None, metavar="SECONDS")
    parser.add_argument("--dns-timeout", type=float, default=None, metavar="SECONDS")
    parser.add_argument("--fetch-timeout", type=float, default=None, metavar="SECONDS")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command")
    image = subparsers.add_parser("image", help="Extract from a local image file.")
    image.add_argument("path")
    image_url = subparsers.add_parser("image-url", help="Extract from an image URL.")
    image_url.add_argument("url")
    website = subparsers.add_parser("website", help="Render a website and extract its theme.")
    website.add_argument("url")

    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.command is None and args.input is None:
        parser.error("a command (image, image-url, website) or --input is required")
    if args.command is not None and args.input is not None:
        parser.error("--input cannot be combined with a command")
    return args


def read_input(path: Path) -> list[str]:
    """Read newline separated entries from *path* and return non-empty lines."""
    if not path.exists():
        raise FileNotFoundError(f"Input file does not exist: {path}")
    lines = [line.strip() for line in path.read_text(encoding="utf-8-sig").splitlines()]
    return [line for line in lines if line and not line.startswith("#")]


def parse_target(line: str) -> Target:
    """Split an input line into a target kind and value."""
    for kind in KINDS:
        prefix = f"{kind}:"
        if line.startswith(prefix):
            return Target(kind, line[len(prefix):].strip())
    return Target("website", line)


def build_settings(args: argparse.Namespace) -> ExtractionSettings:
    overrides = {
        name: getattr(args, name)
        for name in ("navigation_timeout", "dns_timeout", "fetch_timeout")
        if getattr(args, name) is not None
    }
    return replace(ExtractionSettings(), **overrides)


def _safe_label(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme in ("http", "https"):
        host = parsed.netloc or parsed.path or "site"
    else:
        host = Path(value).stem or "image"
    sanitized = "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in host)
    sanitized = sanitized.strip("._-")
    return sanitized or "site"


async def extract_target(extractor: ThemeExtractor, target: Target) -> ThemeResult:
    if target.kind == "image":
        data = Path(target.value).read_bytes()
        return await asyncio.to_thread(extractor.extract_from_image, data)
    url = ensure_http_scheme(target.value)
    if target.kind == "image-url":
        return await extractor.extract_from_image_url(url)
    return await extractor.extract_from_website(url)


def _emit(result: ThemeResult, label: str, args: argparse.Namespace) -> None:
    print(
        f"[theme] {label}: {' '.join(result.palette)} "
        f"(primary {result.theme.primary.hex}, {result.extraction.value})"
    )
    if args.out:
        out_dir = Path(args.out)
        path = write_theme(out_dir / f"{label}.theme.json", result)
        print(f"[saved] {label}: {path}")
        if args.css:
            css_path = out_dir / f"{label}.theme.css"
            css_path.write_text(css_declarations(result.theme), encoding="utf-8")
            print(f"[saved] {label}: {css_path}")
        return
    print(json.dumps(theme_payload(result), indent=2))
    if args.css:
        print(css_declarations(result.theme), end="")


async def run_targets(
    extractor: ThemeExtractor, targets: list[Target], args: argparse.Namespace
) -> int:
    """Extract every target in turn; returns the number of failures."""
    failures = 0
    progress = tqdm(targets, desc="themes", unit="target", disable=len(targets) < 2)
    for target in progress:
        label = _safe_label(target.value)
        try:
            result = await extract_target(extractor, target)
        except ThemeError as exc:
            failures += 1
            print(f"[warn] {label}: {exc.message} ({exc.code})")
            continue
        except OSError as exc:
            failures += 1
            print(f"[warn] {label}: {exc}")
            continue
        _emit(result, label, args)
    return failures


def main(argv: Iterable[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.input is not None:
        try:
            targets = [parse_target(line) for line in read_input(Path(args.input))]
        except FileNotFoundError as exc:
            print(f"[error] {exc}")
            return 2
        print(f"[input] {len(targets)} targets")
    else:
        value = args.path if args.command == "image" else args.url
        targets = [Target(args.command, value)]

    extractor = ThemeExtractor(settings=build_settings(args))
    failures = asyncio.run(run_targets(extractor, targets, args))
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
