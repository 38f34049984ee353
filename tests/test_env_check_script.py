"""Tests for the environment drift detection script."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from scripts import check_env

MANAGED_ENV_KEYS = [
    "GEMINI_API_KEY",
    "REDIS_URL",
    "SERPAPI_API_KEY",
    "ESTIMATE_API_KEYS",
    "ADMIN_API_KEY",
    "RATE_LIMIT_TIER_LIMITS",
    "ESTIMATE_TOOL_TIMEOUT_SECONDS",
    "ESTIMATE_REQUEST_TIMEOUT_SECONDS",
]


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_managed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so monkeypatch restores the original state afterwards.
    for key in MANAGED_ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_mismatched_checksum(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, GEMINI_API_KEY="gemini-key", REDIS_URL="redis://cache:6379/0")

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK
    baseline = hash_file.read_text(encoding="utf-8").strip()
    assert baseline

    _clear_managed_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(env_file, GEMINI_API_KEY="gemini-key", REDIS_URL="redis://other:6379/0")

    _clear_managed_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


def test_validation_failure_for_missing_gemini_key(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, REDIS_URL="redis://cache:6379/0")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_validation_failure_for_malformed_tier_limits(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, GEMINI_API_KEY="gemini-key", RATE_LIMIT_TIER_LIMITS="basic:20")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_strict_check_fails_on_warnings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, GEMINI_API_KEY="gemini-key")

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_OK
    _clear_managed_env(monkeypatch)
    exit_code = check_env.main(["check", "--env-file", str(env_file), "--strict"])

    assert exit_code == check_env.EXIT_WARNINGS
    assert "REDIS_URL is not set" in capsys.readouterr().err


def test_complete_configuration_has_no_warnings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(
        env_file,
        GEMINI_API_KEY="gemini-key",
        REDIS_URL="redis://cache:6379/0",
        SERPAPI_API_KEY="serp-key",
        ESTIMATE_API_KEYS="key-one,key-two",
        ADMIN_API_KEY="admin-key",
        RATE_LIMIT_TIER_LIMITS="basic=10,premium=50",
    )

    settings = check_env._load_settings(env_file)

    assert settings.rate_limit.tier_limits == {"basic": 10, "premium": 50}
    assert settings.auth.static_api_keys == ("key-one", "key-two")
    assert check_env.collect_warnings(settings) == []


def test_request_deadline_shorter_than_tool_timeout_warns(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(
        env_file,
        GEMINI_API_KEY="gemini-key",
        ESTIMATE_TOOL_TIMEOUT_SECONDS="30",
        ESTIMATE_REQUEST_TIMEOUT_SECONDS="5",
    )

    warnings = check_env.collect_warnings(check_env._load_settings(env_file))

    assert any("ESTIMATE_REQUEST_TIMEOUT_SECONDS" in warning for warning in warnings)


def test_validation_failure_for_zero_tier_limit(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, GEMINI_API_KEY="gemini-key", RATE_LIMIT_TIER_LIMITS="basic=0,premium=50")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_validation_failure_for_non_positive_request_deadline(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, GEMINI_API_KEY="gemini-key", ESTIMATE_REQUEST_TIMEOUT_SECONDS="0")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
