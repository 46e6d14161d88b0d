from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from alert_governance.config import (
    AppConfig,
    BaselineConfig,
    ConfigLoadError,
    LogLevel,
    PolicyConfig,
    StorageBackend,
    load_config,
)
from alert_governance.policy.constants import (
    ADMISSION_LEDGER_MAX,
    AUDIT_MAX_ENTRIES,
    DEDUPE_WINDOW_MS,
    MAX_THROTTLE_DELAY_MS,
    THROTTLE_BASE_DELAY_MS,
)

REPO_CONFIG = Path(__file__).resolve().parents[1] / "config" / "governance.yaml"


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "governance.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_repository_config_loads() -> None:
    config = load_config(REPO_CONFIG, environ={})

    assert config.policy.dedupe_window_ms == 3_600_000
    assert config.baseline.windows == [7, 14, 30]
    assert config.storage.backend == StorageBackend.MEMORY
    assert config.alert_defaults.quiet_hours.start == "22:00"
    assert config.alert_defaults.daily_caps.moderate == 4


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, ""), environ={})
    assert config == AppConfig()


def test_partial_sections(tmp_path: Path) -> None:
    config = load_config(
        _write(tmp_path, "policy:\n  timezone: Europe/Berlin\nbaseline:\n  windows: [30, 7]\n"),
        environ={},
    )
    assert config.policy.timezone == "Europe/Berlin"
    assert config.policy.audit_max_entries == 200
    assert config.baseline.windows == [7, 30]


def test_environment_overrides(tmp_path: Path) -> None:
    config = load_config(
        _write(tmp_path, "logging:\n  format: text\n"),
        environ={
            "REDIS_URL": "redis://cache:6380",
            "LOG_LEVEL": "debug",
            "ALERT_POLICY_NAMESPACE": "tenant-a",
        },
    )
    assert config.redis.url == "redis://cache:6380"
    assert config.logging.level == LogLevel.DEBUG
    assert config.logging.format.value == "text"
    assert config.policy.namespace == "tenant-a"


def test_invalid_log_level_env(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="LOG_LEVEL"):
        load_config(_write(tmp_path, ""), environ={"LOG_LEVEL": "chatty"})


def test_missing_file() -> None:
    with pytest.raises(ConfigLoadError) as exc:
        load_config("does/not/exist.yaml", environ={})
    assert exc.value.file_path == Path("does/not/exist.yaml")


def test_invalid_yaml(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="Invalid YAML"):
        load_config(_write(tmp_path, "policy: [unclosed\n"), environ={})


def test_root_must_be_mapping(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="mapping"):
        load_config(_write(tmp_path, "- a\n- b\n"), environ={})


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="validation failed"):
        load_config(_write(tmp_path, "policy:\n  dedupe_windw_ms: 5\n"), environ={})


def test_unknown_timezone_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_config(_write(tmp_path, "policy:\n  timezone: Mars/Olympus\n"), environ={})


def test_invalid_alert_defaults_are_load_errors(tmp_path: Path) -> None:
    text = "alert_defaults:\n  quiet_hours:\n    start: '25:00'\n    end: '07:00'\n"
    with pytest.raises(ConfigLoadError, match="alert_defaults") as exc:
        load_config(_write(tmp_path, text), environ={})
    assert exc.value.cause is not None


def test_window_validation() -> None:
    with pytest.raises(ValidationError):
        BaselineConfig(windows=[7, 0])
    with pytest.raises(ValidationError):
        BaselineConfig(windows=[])


def test_with_overrides() -> None:
    config = AppConfig().with_overrides(policy=PolicyConfig(namespace="x"))
    assert config.policy.namespace == "x"
    assert config.baseline == BaselineConfig()


def test_policy_defaults_come_from_limits() -> None:
    config = PolicyConfig()

    assert config.dedupe_window_ms == DEDUPE_WINDOW_MS
    assert config.throttle_base_delay_ms == THROTTLE_BASE_DELAY_MS
    assert config.max_throttle_delay_ms == MAX_THROTTLE_DELAY_MS
    assert config.audit_max_entries == AUDIT_MAX_ENTRIES
    assert config.admission_ledger_max == ADMISSION_LEDGER_MAX


def test_oversized_throttle_ceiling_is_a_load_error(tmp_path: Path) -> None:
    text = f"policy:\n  max_throttle_delay_ms: {MAX_THROTTLE_DELAY_MS + 1}\n"
    with pytest.raises(ConfigLoadError, match="validation failed"):
        load_config(_write(tmp_path, text), environ={})
