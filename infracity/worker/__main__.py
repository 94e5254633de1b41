"""
InfraCity worker CLI entry point.

Usage:
    python -m infracity.worker [OPTIONS]

Options:
    --executor TYPE     Executor type (default: git)
    --poll-interval N   Seconds between polls (default: from config)
"""
from __future__ import annotations

import argparse
import sys

from .loop import run_worker


def main() -> int:
    """Main entry point for worker CLI."""
    parser = argparse.ArgumentParser(
        description="InfraCity worker - analyzes registered repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with default settings
    python -m infracity.worker

    # Poll every 10 seconds when idle
    python -m infracity.worker --poll-interval 10
        """,
    )

    parser.add_argument(
        "--executor",
        type=str,
        default="git",
        help="Executor type (default: git)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between poll cycles when idle (default: from config)",
    )

    args = parser.parse_args()

    print("Starting InfraCity worker...")
    print(f"  Executor: {args.executor}")
    print(f"  Poll interval: {args.poll_interval or 'from config'}")
    print()

    try:
        run_worker(executor_type=args.executor, poll_interval=args.poll_interval)
        return 0
    except KeyboardInterrupt:
        print("\nWorker stopped by user")
        return 0
    except Exception as e:
        print(f"Worker error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
