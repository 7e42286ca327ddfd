"""CLI handlers for chart verb commands (apply, delete, validate).

Usage:
    chart-driver apply -f <path> [-n <namespace>] [--name <chart>] [--dry-run] [--no-hooks] [--verbose]
    chart-driver delete -f <path> [-n <namespace>] [--name <chart>] [--dry-run] [--no-hooks] [--yes]
    chart-driver validate -f <path> [--verbose]
"""

import argparse
import json
import logging
import sys

from chart import Chart, ChartError, load_chart
from chart_opr.executor import ChartExecutor
from common import ActionResult
from config import ConfigError, DriverConfig, load_config
from kube.client import ClusterClient, create_cluster_client
from readiness import validate_chart

logger = logging.getLogger(__name__)


def _common_parser(verb: str) -> argparse.ArgumentParser:
    """Build argument parser with common options for all verbs."""
    parser = argparse.ArgumentParser(
        prog=f'chart-driver {verb}',
        description=f'{verb.capitalize()} a chart of pre-rendered manifests',
    )
    parser.add_argument(
        '--file', '-f',
        required=True,
        help='Manifest file or directory of manifests',
    )
    parser.add_argument(
        '--name',
        help='Chart name (default: file or directory name)',
    )
    parser.add_argument(
        '--namespace', '-n',
        help='Namespace for resources without one (override: CHART_DRIVER_NAMESPACE)',
    )
    parser.add_argument(
        '--config',
        help='Driver config file (override: CHART_DRIVER_CONFIG)',
    )
    parser.add_argument(
        '--kubeconfig',
        help='Path to the kubeconfig file',
    )
    parser.add_argument(
        '--context',
        help='Kubeconfig context (override: CHART_DRIVER_CONTEXT)',
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Preview operations without executing',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging',
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs to stderr)',
    )
    parser.add_argument(
        '--skip-preflight',
        action='store_true',
        help='Skip pre-flight validation checks',
    )
    parser.add_argument(
        '--no-hooks',
        action='store_true',
        help='Do not execute chart hooks',
    )
    return parser


def _setup_logging(verbose: bool, json_output: bool) -> None:
    """Configure logging based on flags."""
    if json_output:
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        root_logger.addHandler(stderr_handler)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _load_config(args) -> DriverConfig:
    """Load driver config and apply command line overrides.

    Raises:
        ConfigError: If the config file is missing or invalid
    """
    config = load_config(args.config)
    if getattr(args, 'namespace', None):
        config.namespace = args.namespace
    if getattr(args, 'context', None):
        config.context = args.context
    if getattr(args, 'kubeconfig', None):
        config.kubeconfig = args.kubeconfig
    return config


def _load_chart_and_config(args) -> tuple[Chart, DriverConfig]:
    """Load chart and config from parsed args.

    Returns:
        (chart, config) tuple

    Raises:
        SystemExit: On config or chart errors
    """
    try:
        config = _load_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        chart = load_chart(args.file, name=args.name, namespace=config.namespace)
    except ChartError as e:
        print(f"Error loading chart: {e}", file=sys.stderr)
        sys.exit(1)

    return chart, config


def _create_client(config: DriverConfig) -> ClusterClient:
    try:
        return create_cluster_client(config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _run_preflight(args, client: ClusterClient, chart: Chart) -> int | None:
    """Run preflight checks for verb commands.

    Returns:
        None if checks pass, exit code (1) if checks fail.
    """
    if args.skip_preflight or args.dry_run:
        return None

    objs = list(chart.resources) + [hook.obj for hook in chart.hooks.all()]
    success, message = validate_chart(client, objs)
    if not success:
        print("\nPre-flight validation failed:")
        print(f"  \u2717 {message}")
        print("\nUse --skip-preflight to bypass these checks")
        print()
        return 1
    logger.info(f"Pre-flight validation passed: {message}")
    return None


def _emit_json(verb: str, chart: Chart, result: ActionResult) -> None:
    """Emit structured JSON output."""
    output = {
        'verb': verb,
        'chart': chart.name,
        'namespace': chart.namespace,
        'success': result.success,
        'duration_seconds': round(result.duration, 2),
        'message': result.message,
        'details': result.details,
    }
    print(json.dumps(output, indent=2))


def _report(verb: str, args, chart: Chart, result: ActionResult) -> int:
    if args.json_output:
        _emit_json(verb, chart, result)
    if not result.success:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1
    logger.info(result.message)
    return 0


def apply_main(argv: list) -> int:
    """Handle 'apply' verb."""
    parser = _common_parser('apply')
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    chart, config = _load_chart_and_config(args)
    client = _create_client(config)

    preflight_rc = _run_preflight(args, client, chart)
    if preflight_rc is not None:
        return preflight_rc

    executor = ChartExecutor(
        client=client,
        config=config,
        dry_run=args.dry_run,
        out=sys.stderr if args.json_output else None,
        no_hooks=args.no_hooks,
    )
    result = executor.apply(chart)
    return _report('apply', args, chart, result)


def delete_main(argv: list) -> int:
    """Handle 'delete' verb."""
    parser = _common_parser('delete')
    parser.add_argument(
        '--yes', '-y',
        action='store_true',
        help='Skip confirmation prompt',
    )
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    chart, config = _load_chart_and_config(args)

    # Confirmation for destructive operation
    if not args.dry_run and not args.yes:
        print(f"\nWARNING: This will delete all resources of chart '{chart.name}'.")
        print(f"Namespace: {chart.namespace}")
        print("This action cannot be undone.")
        response = input("Continue? [y/N] ").strip().lower()
        if response != 'y':
            print("Aborted.")
            return 1

    client = _create_client(config)

    preflight_rc = _run_preflight(args, client, chart)
    if preflight_rc is not None:
        return preflight_rc

    executor = ChartExecutor(
        client=client,
        config=config,
        dry_run=args.dry_run,
        out=sys.stderr if args.json_output else None,
        no_hooks=args.no_hooks,
    )
    result = executor.delete(chart)
    return _report('delete', args, chart, result)


def validate_main(argv: list) -> int:
    """Handle 'validate' verb.

    Loads the chart without contacting a cluster, which validates the
    manifests and every hook definition.
    """
    parser = argparse.ArgumentParser(
        prog='chart-driver validate',
        description='Validate chart manifests and hook annotations',
    )
    parser.add_argument(
        '--file', '-f',
        required=True,
        help='Manifest file or directory of manifests',
    )
    parser.add_argument(
        '--name',
        help='Chart name (default: file or directory name)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='List resources and hooks',
    )
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        chart = load_chart(args.file, name=args.name)
    except ChartError as e:
        print(f"Chart is invalid: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        for obj in chart.resources:
            print(f"  resource {obj['kind']}/{obj['metadata']['name']}")
        for hook in chart.hooks.all():
            print(f"  hook     {hook.type} Job/{hook.name}")

    resource_count = len(chart.resources)
    hook_count = chart.hook_count()
    print(f"Chart '{chart.name}' is valid "
          f"({resource_count} resource{'s' if resource_count != 1 else ''}, "
          f"{hook_count} hook{'s' if hook_count != 1 else ''})")
    return 0
