"""Verify that the estimate API's environment configuration is intact.

The tool performs three checks:

1. It instantiates ``AppSettings`` from the provided ``.env`` file so missing
   or malformed values (for example a bad ``RATE_LIMIT_TIER_LIMITS`` pair) are
   reported before the API starts.
2. It prints operational warnings for settings that are valid but leave the
   service degraded: no ``REDIS_URL`` (process-local rate limiting only), no
   ``SERPAPI_API_KEY`` (research without web grounding), or no API key source.
3. It can record and verify a checksum for the ``.env`` file so unexpected
   edits are detected.

Example usages::

    python -m scripts.check_env check --env-file /opt/repair-estimator/.env

    python -m scripts.check_env record --env-file /opt/repair-estimator/.env \
        --hash-file /opt/repair-estimator/.env.sha256

    python -m scripts.check_env verify --env-file /opt/repair-estimator/.env \
        --hash-file /opt/repair-estimator/.env.sha256 --strict
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from repair_api.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_WARNINGS = 4
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings as the API would, seeded from ``env_file``."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def collect_warnings(settings: AppSettings) -> list[str]:
    """Return human-readable notes about degraded-but-valid configuration."""
    warnings: list[str] = []
    if not settings.rate_limit.redis_url:
        warnings.append(
            "REDIS_URL is not set: rate limits are enforced per process only."
        )
    if not settings.serpapi_api_key:
        warnings.append(
            "SERPAPI_API_KEY is not set: research answers will not cite web sources."
        )
    has_key_source = bool(settings.auth.static_api_keys) or Path(
        settings.auth.api_keys_file
    ).exists() or Path(settings.auth.api_key_db_path).exists()
    if not has_key_source:
        warnings.append(
            "No API key source found (ESTIMATE_API_KEYS, API_KEYS_FILE or "
            "API_KEY_DB_PATH): every estimate request will be rejected."
        )
    if not settings.auth.admin_api_key:
        warnings.append("ADMIN_API_KEY is not set: /admin endpoints are disabled.")
    estimator = settings.estimator
    if estimator.request_timeout_seconds is not None and (
        estimator.request_timeout_seconds < estimator.tool_timeout_seconds
    ):
        warnings.append(
            "ESTIMATE_REQUEST_TIMEOUT_SECONDS is shorter than "
            "ESTIMATE_TOOL_TIMEOUT_SECONDS: slow items will always be cut off."
        )
    return warnings


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Investigate recent changes before restarting the API.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate estimate API settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
        subparser.add_argument(
            "--strict",
            action="store_true",
            help="Exit non-zero when operational warnings are reported.",
        )

    for name, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        add_common_arguments(command_parser)
        command_parser.add_argument(
            "--hash-file",
            required=True,
            type=Path,
            help="Location of the checksum baseline.",
        )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings without touching any checksum files.",
    )
    add_common_arguments(check_parser)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    warnings = collect_warnings(settings)
    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    result = handlers[args.command]()
    if result == EXIT_OK and warnings and args.strict:
        return EXIT_WARNINGS
    return result


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
