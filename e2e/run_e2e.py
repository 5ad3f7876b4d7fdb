#!/usr/bin/env python3
"""
E2E Test Runner

Runs the e2e tests against real proxy binaries.

Usage:
    python e2e/run_e2e.py                           # Run all tests
    python e2e/run_e2e.py --check                   # Check environment only
    python e2e/run_e2e.py --debug-components envoy  # Debug logs for Envoy
    python e2e/run_e2e.py -k sidecar                # Filter by test name
"""

import argparse
import subprocess
import sys
from pathlib import Path

from apiproxy_testenv import DebugComponents, load_env_config, print_env_status, validate_env_config


def run_pytest(args: list[str]):
    """Run pytest with given arguments"""
    cmd = [sys.executable, "-m", "pytest", "e2e/"] + args
    print(f"Running: {' '.join(cmd)}\n")

    result = subprocess.run(cmd, cwd=Path(__file__).parent.parent)
    return result.returncode


def main():
    parser = argparse.ArgumentParser(description="E2E Test Runner")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check the environment only, don't run tests",
    )
    parser.add_argument(
        "--debug-components",
        type=str,
        help='Display debug logs for components, can be "all", "envoy", "configmanager", "bootstrap"',
    )
    parser.add_argument(
        "-k",
        dest="keyword",
        type=str,
        help="Only run tests matching the keyword expression",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "pytest_args",
        nargs="*",
        help="Additional pytest arguments",
    )

    args = parser.parse_args()

    if args.debug_components is not None:
        try:
            DebugComponents.parse(args.debug_components)
        except ValueError as e:
            parser.error(str(e))

    # Load and validate environment
    config = load_env_config()
    is_valid, issues = validate_env_config(config)
    print_env_status(config)

    if issues:
        print("⚠️  Environment issues:")
        for issue in issues:
            print(f"   - {issue}")
        print()

    if args.check:
        return 0 if is_valid else 1

    if not is_valid:
        print("❌ Cannot run e2e tests: environment not configured")
        print("   Please set the binary paths in .env")
        return 1

    # Build pytest arguments
    pytest_args = ["-m", "e2e"]

    if args.verbose:
        pytest_args.append("-v")

    if args.debug_components:
        pytest_args.extend(["--debug-components", args.debug_components])

    if args.keyword:
        pytest_args.extend(["-k", args.keyword])

    pytest_args.extend(args.pytest_args)

    return run_pytest(pytest_args)


if __name__ == "__main__":
    sys.exit(main())
