#!/usr/bin/env python3
"""Run the formatters, linters and the test suite in one go.

Steps, in order: black, isort, ruff, pylint, pytest. Every step runs even
when an earlier one fails; a summary is printed at the end and the exit
code is non-zero if anything failed.
"""

from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent
SOURCES = ["core", "infrastructure", "main.py"]

STEPS: list[tuple[list[str], str]] = [
    ([sys.executable, "-m", "black", ".", "--check"], "black (format check)"),
    ([sys.executable, "-m", "isort", ".", "--check-only"], "isort (import order)"),
    ([sys.executable, "-m", "ruff", "check", "."], "ruff"),
    ([sys.executable, "-m", "pylint", *SOURCES], "pylint"),
    ([sys.executable, "-m", "pytest", "-q"], "pytest"),
]


def run_step(cmd: list[str], description: str) -> tuple[bool, str]:
    """Run one tool and return (passed, combined output)."""
    print(f"\n{'=' * 60}")
    print(f"{description}: {' '.join(cmd[1:])}")
    print("=" * 60)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as e:
        print(f"could not start: {e}")
        return False, str(e)

    output = result.stdout + result.stderr
    passed = result.returncode == 0
    print("passed" if passed else f"failed (exit {result.returncode})")
    if output.strip():
        print(output)
    return passed, output


def main() -> None:
    results = [(description, *run_step(cmd, description)) for cmd, description in STEPS]

    print(f"\n{'=' * 60}")
    print("Summary")
    print("=" * 60)
    for description, passed, _ in results:
        print(f"{description:<24} {'ok' if passed else 'FAILED'}")

    sys.exit(0 if all(passed for _, passed, _ in results) else 1)


if __name__ == "__main__":
    main()
