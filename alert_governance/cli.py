"""
Command-line interface.

Usage:
    python -m alert_governance validate-settings settings.yaml [--strict]
    python -m alert_governance export-audit --student s1 [--limit 50]
    python -m alert_governance show-baseline --student s1

Global options:
    --config PATH     Configuration file (default: config/governance.yaml;
                      built-in defaults are used if it does not exist)
    --log-level LEVEL Override the configured log level

export-audit and show-baseline read persisted state and exit with an error
when storage.backend is memory.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog
import yaml

from alert_governance.baseline.service import BaselineService
from alert_governance.config.loader import DEFAULT_CONFIG_PATH, ConfigLoadError, load_config
from alert_governance.config.models import AppConfig, StorageBackend
from alert_governance.logging_config import setup_logging
from alert_governance.policy.engine import AlertPolicies
from alert_governance.policy.validation import (
    SettingsValidationError,
    assert_valid_alert_settings,
    validate_alert_settings,
)
from alert_governance.stats.baseline_utils import generate_baseline_report
from alert_governance.storage import KeyValueStore, StoreError, create_store

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alert-governance",
        description="Alert governance and baseline statistics tools",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--log-level", default=None, help="Override the log level")

    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate-settings", help="Validate and normalize alert settings")
    validate.add_argument("file", type=Path, help="YAML or JSON settings file")
    validate.add_argument(
        "--strict",
        action="store_true",
        help="Fail instead of printing normalized settings when problems are found",
    )

    audit = sub.add_parser("export-audit", help="Print a student's admission audit trail")
    audit.add_argument("--student", required=True, help="Student identifier")
    audit.add_argument("--limit", type=int, default=100, help="Entries to export (<=0 for all)")

    baseline = sub.add_parser("show-baseline", help="Summarize a student's persisted baseline")
    baseline.add_argument("--student", required=True, help="Student identifier")

    return parser


def _load_app_config(path: Optional[Path]) -> AppConfig:
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return AppConfig()
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def _validate_settings(args: argparse.Namespace) -> int:
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"error: cannot read {args.file}: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.strict:
        try:
            normalized = assert_valid_alert_settings(raw)
        except SettingsValidationError as e:
            for error in e.errors:
                print(f"error: {error}", file=sys.stderr)
            return EXIT_INVALID
        print(normalized.model_dump_json(indent=2))
        return EXIT_OK

    result = validate_alert_settings(raw)
    print(result.model_dump_json(indent=2))
    return EXIT_OK if result.is_valid else EXIT_INVALID


def _open_store(config: AppConfig, store: Optional[KeyValueStore]) -> KeyValueStore:
    if store is not None:
        return store
    if config.storage.backend == StorageBackend.MEMORY:
        # A fresh in-memory store is always empty.
        raise StoreError(
            "the memory backend keeps no state between runs; "
            "set storage.backend to redis to read persisted data"
        )
    return create_store(config.storage, config.redis)


def _export_audit(
    args: argparse.Namespace, config: AppConfig, store: Optional[KeyValueStore] = None
) -> int:
    store = _open_store(config, store)
    policies = AlertPolicies(store=store, config=config.policy)
    print(policies.export_audit_trail(args.student, args.limit))
    return EXIT_OK


def _show_baseline(
    args: argparse.Namespace, config: AppConfig, store: Optional[KeyValueStore] = None
) -> int:
    store = _open_store(config, store)
    service = BaselineService(
        store=store,
        config=config.baseline,
        namespace=config.policy.namespace,
    )
    baseline = service.get_baseline(args.student)
    if baseline is None:
        print(f"No baseline stored for student {args.student}")
        return EXIT_INVALID
    print(generate_baseline_report(baseline))
    return EXIT_OK


def main(argv: Optional[List[str]] = None, store: Optional[KeyValueStore] = None) -> int:
    """
    Run the CLI.

    export-audit and show-baseline read persisted state, so they need the
    redis backend unless a store is passed in.

    Args:
        argv: Arguments (defaults to sys.argv[1:]).
        store: Backend to read from instead of the configured one.

    Returns:
        int: Process exit code.
    """
    args = build_parser().parse_args(argv)

    try:
        config = _load_app_config(args.config)
    except ConfigLoadError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(
        args.log_level or config.logging.level.value,
        config.logging.format.value,
    )
    logger.debug("cli_command_started", command=args.command)

    if args.command == "validate-settings":
        return _validate_settings(args)

    try:
        if args.command == "export-audit":
            return _export_audit(args, config, store)
        return _show_baseline(args, config, store)
    except StoreError as e:
        logger.error("cli_store_unavailable", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR
