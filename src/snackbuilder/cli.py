# src/snackbuilder/cli.py
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .graph import SnackbuilderStageError, run_snackbuilder_graph
from .utils import ValidationError

STAGE_READ_INPUT = "read_input"


def _parse_dotenv_line(line: str) -> tuple[str, str] | None:
    """
    Minimal .env parser: KEY=VALUE, optional "export ", # comments outside quotes,
    '...' / "..." values. No variable expansion.
    """
    s = line.strip()
    if s.startswith("export "):
        s = s[len("export ") :].lstrip()
    if not s or s.startswith("#") or "=" not in s:
        return None

    key, val = (part.strip() for part in s.split("=", 1))
    if not key:
        return None

    if val[:1] in ("'", '"'):
        quote = val[0]
        end = val.find(quote, 1)
        return key, val[1:end] if end > 0 else val[1:]

    return key, val.split("#", 1)[0].strip()


def _load_dotenv_file(path: str, *, override: bool = False) -> bool:
    """Load KEY=VALUE pairs into os.environ. Returns True if the file was read."""
    p = Path(path)
    if not p.is_file():
        return False

    for raw_line in p.read_text(encoding="utf-8").splitlines():
        parsed = _parse_dotenv_line(raw_line)
        if not parsed:
            continue
        k, v = parsed
        if override or k not in os.environ:
            os.environ[k] = v
    return True


def _discover_aws_region(explicit: str | None = None) -> str | None:
    if explicit:
        return explicit
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or None


def _read_transcript(source: str | None) -> tuple[str, str]:
    """Returns (text, source_label); "-" or no argument reads stdin."""
    if not source or source == "-":
        return sys.stdin.read(), "stdin"
    return Path(source).read_text(encoding="utf-8"), f"file:{source}"


def _build_job_payload(args: argparse.Namespace, transcript: str) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": args.name,
        "sdk_version": args.sdk_version,
        "transcript": transcript,
        "unknown_dependency_policy": args.unknown_deps,
    }
    bucket = args.s3_bucket or os.environ.get("SNACKBUILDER_S3_BUCKET", "").strip()
    if bucket:
        output: dict[str, Any] = {"s3_bucket": bucket}
        prefix = args.s3_prefix or os.environ.get("SNACKBUILDER_S3_PREFIX", "").strip()
        if prefix:
            output["s3_prefix"] = prefix
        expires = os.environ.get("SNACKBUILDER_URL_EXPIRES_IN", "").strip()
        if expires:
            output["url_expires_in"] = expires
        payload["output"] = output
    return payload


def _print_success(obj: dict[str, Any]) -> None:
    print(json.dumps(obj, separators=(",", ":")), file=sys.stdout)


def _print_failure(stage: str, err: Exception) -> None:
    out: dict[str, Any] = {
        "ok": False,
        "stage": stage,
        "error_code": f"SNACKBUILDER_FAILED_{stage.upper()}",
        "error_message": str(err),
    }
    if isinstance(err, ValidationError):
        out["path"] = err.path
    print(json.dumps(out, separators=(",", ":")), file=sys.stdout)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="snackbuilder",
        description="Turn a multi-file LLM transcript into an Expo Snack preview",
    )
    parser.add_argument(
        "transcript",
        nargs="?",
        default=None,
        metavar="TRANSCRIPT",
        help="Path to the transcript text file ('-' or omitted: read stdin).",
    )
    parser.add_argument("--name", default="LLM Preview", help="Snack name shown in the preview.")
    parser.add_argument("--sdk-version", dest="sdk_version", default="53.0.0", help="Expo SDK version.")
    parser.add_argument(
        "--unknown-deps",
        dest="unknown_deps",
        choices=("omit", "latest"),
        default="omit",
        help="Packages missing from the compatibility table: omit them (default) or request 'latest'.",
    )
    parser.add_argument("--s3-bucket", dest="s3_bucket", help="Bucket for the payload (env: SNACKBUILDER_S3_BUCKET).")
    parser.add_argument("--s3-prefix", dest="s3_prefix", help="Key prefix for the payload (env: SNACKBUILDER_S3_PREFIX).")
    parser.add_argument(
        "--dotenv",
        nargs="?",
        const=".env",
        default=None,
        metavar="PATH",
        help="Optional: load env vars from a local .env file (default: ./.env).",
    )
    parser.add_argument(
        "--dotenv-override",
        action="store_true",
        help="Optional: allow .env values to override already-set environment variables.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep the payload in memory instead of uploading it.",
    )
    parser.add_argument(
        "--aws-region",
        dest="aws_region",
        metavar="REGION",
        help="Optional AWS region override (otherwise AWS_REGION/AWS_DEFAULT_REGION are used).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr.")
    parser.add_argument(
        "--version",
        action="version",
        version=f"snackbuilder {__version__}",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # stdout carries exactly one JSON document; logs go to stderr
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.dotenv:
        _load_dotenv_file(str(args.dotenv), override=bool(args.dotenv_override))

    try:
        transcript, source = _read_transcript(args.transcript)
    except (OSError, UnicodeDecodeError) as e:
        _print_failure(STAGE_READ_INPUT, e)
        return 1

    try:
        # SnackbuilderStageError carries the failing stage for the JSON error line
        result = run_snackbuilder_graph(
            payload=_build_job_payload(args, transcript),
            payload_src=source,
            dry_run=bool(args.dry_run),
            aws_region=_discover_aws_region(args.aws_region),
        )
        _print_success(result)
        return 0

    except SnackbuilderStageError as e:
        _print_failure(e.stage, e.inner)
        return 1

    except Exception as e:  # noqa: BLE001 - top-level CLI error handler
        _print_failure("unknown", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
