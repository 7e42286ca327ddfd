#!/usr/bin/env python3
"""CLI entry point for chart-driver.

Verbs:
- apply: Apply a chart with its pre-/post-apply hooks
- delete: Delete a chart with its pre-/post-delete hooks
- validate: Validate chart manifests and hooks offline
"""

import logging
import subprocess
import sys
from pathlib import Path

VERB_COMMANDS = {
    "apply": "Apply a chart (hooks, ordered resources)",
    "delete": "Delete a chart (hooks, ordered resources, claims)",
    "validate": "Validate chart manifests and hook annotations",
}

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def get_version():
    """Get version from git tags, 'dev' outside a checkout."""
    try:
        result = subprocess.run(
            ['git', 'describe', '--tags', '--abbrev=0'],
            capture_output=True, text=True,
            cwd=Path(__file__).parent,
            check=False,
        )
        return result.stdout.strip() if result.returncode == 0 else 'dev'
    except OSError:
        return 'dev'


def print_usage():
    """Print top-level usage showing verbs."""
    print(f"chart-driver {get_version()}")
    print()
    print("Usage: chart-driver <verb> [options]")
    print()
    print("Commands:")
    for verb, desc in VERB_COMMANDS.items():
        print(f"  {verb:<12} {desc}")
    print()
    print("Run 'chart-driver <verb> --help' for verb-specific options.")
    print()
    print("Examples:")
    print("  chart-driver apply -f ./rendered/app -n apps")
    print("  chart-driver delete -f ./rendered/app -n apps --yes")
    print("  chart-driver validate -f ./rendered/app")


def dispatch(verb: str, argv: list) -> int:
    """Dispatch to verb-specific CLI handler.

    Args:
        verb: The verb (e.g., "apply")
        argv: Remaining command line arguments

    Returns:
        Exit code
    """
    if verb == "apply":
        from chart_opr.cli import apply_main
        rc: int = apply_main(argv)
        return rc
    if verb == "delete":
        from chart_opr.cli import delete_main
        rc = delete_main(argv)
        return rc
    if verb == "validate":
        from chart_opr.cli import validate_main
        rc = validate_main(argv)
        return rc

    print(f"Error: Unknown verb '{verb}'", file=sys.stderr)
    print(f"Available verbs: {', '.join(VERB_COMMANDS)}", file=sys.stderr)
    return 1


def main(argv: list | None = None) -> int:
    """Run the chart-driver CLI."""
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ('-h', '--help'):
        print_usage()
        return 0 if argv else 1

    if argv[0] == '--version':
        print(f"chart-driver {get_version()}")
        return 0

    return dispatch(argv[0], argv[1:])


if __name__ == '__main__':
    sys.exit(main())
