"""Command line interface for oss_uploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import QueueProgressDisplay, render_configuration_summary, render_results
from .models import UploadConfig
from .services.hashing import HASHERS

DEFAULT_SAFETY_MARGIN = 10


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _collect_files(sources: Sequence[Path]) -> List[Path]:
    """Expand directories (non-recursive) and validate that every source is a file."""
    files: List[Path] = []
    for source in sources:
        source = Path(source).expanduser()
        if source.is_dir():
            files.extend(sorted(p for p in source.iterdir() if p.is_file() and not p.name.startswith(".")))
        elif source.is_file():
            files.append(source)
        else:
            raise CLIError(f"source does not exist: {source}")
    return files


def _build_config(args: argparse.Namespace) -> UploadConfig:
    if args.safety_margin < 0:
        raise CLIError("--safety-margin must be >= 0")
    if args.limit is not None and args.limit <= 0:
        raise CLIError("--limit must be a positive number")
    return UploadConfig(
        safety_margin_seconds=args.safety_margin,
        hash_algorithm=args.hash,
        upload_limit=args.limit,
    )


async def _run_upload(
    files: List[Path],
    credential_url: str,
    method: str,
    config: UploadConfig,
) -> int:
    from .orchestrator import SignedUploadOrchestrator
    from .services import HTTPCredentialIssuer, PostObjectTransport

    issuer = HTTPCredentialIssuer(credential_url, method=method, timeout=config.request_timeout)
    transport = PostObjectTransport(timeout=config.request_timeout)
    display = QueueProgressDisplay()

    async with SignedUploadOrchestrator(issuer, transport, files=[], config=config) as orchestrator:
        orchestrator.on_release(display.on_release)
        orchestrator.on_progress(display.on_progress)
        orchestrator.on_uploaded(display.on_uploaded)
        orchestrator.on_error(display.on_error)
        orchestrator.on_warning(display.on_warning)

        try:
            urls = await orchestrator.upload(files)
        finally:
            display.stop()

    render_results(urls)
    if len(urls) != len(files):
        print(f"ERROR: {len(files) - len(urls)} of {len(files)} file(s) not uploaded", file=sys.stderr)
        return 1
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oss-up",
        description="Upload files one at a time to object storage using server-issued signed credentials.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files (or folders) to upload")
    parser.add_argument(
        "-u",
        "--credential-url",
        default=None,
        help="Credential-issuing endpoint (default from OSS_CREDENTIAL_URL)",
    )
    parser.add_argument(
        "--method",
        default=None,
        help="HTTP method for the credential endpoint (default from OSS_CREDENTIAL_METHOD or GET)",
    )
    parser.add_argument(
        "--hash",
        choices=sorted(HASHERS),
        default=os.getenv("OSS_HASH_ALGORITHM", "blake3"),
        help="Content hash used for storage keys (default: blake3)",
    )
    parser.add_argument(
        "--safety-margin",
        type=float,
        default=DEFAULT_SAFETY_MARGIN,
        help="Refresh credentials this many seconds before they expire",
    )
    parser.add_argument(
        "-l",
        "--limit",
        type=int,
        default=None,
        help="Maximum number of files accepted in one run",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="oss-up (from oss_uploader)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.sources:
        parser.print_help()
        return 0

    credential_url = args.credential_url or os.getenv("OSS_CREDENTIAL_URL")
    method = args.method or os.getenv("OSS_CREDENTIAL_METHOD") or "GET"

    try:
        if not credential_url:
            raise CLIError("credential endpoint not set (use --credential-url or OSS_CREDENTIAL_URL)")
        files = _collect_files(args.sources)
        if not files:
            raise CLIError("no files to upload")
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Files": len(files),
            "Credential API": f"{method.upper()} {credential_url}",
            "Hash": config.hash_algorithm,
            "Safety Margin": f"{config.safety_margin_seconds:g}s",
            "Limit": config.upload_limit or "-",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(files, credential_url, method, config))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
