#!/usr/bin/env python3
"""Run the formatters, linters and the test suite in one go.

Steps, in order: black, isort, ruff, pylint, pytest. Output of failing steps
is repeated at the end.
"""

from pathlib import Path
import subprocess

TARGETS = ["divelog", "tests", "main.py"]

COMMANDS = [
    (["python", "-m", "black", ".", "--check"], "black"),
    (["python", "-m", "isort", ".", "--check-only"], "isort"),
    (["python", "-m", "ruff", "check", "."], "ruff"),
    (["python", "-m", "pylint", *TARGETS], "pylint"),
    (["python", "-m", "pytest", "-q"], "pytest"),
]


def run_command(cmd: list[str], description: str) -> tuple[bool, str]:
    """Run `cmd` from the project root and return (success, combined output)."""
    print(f"\n{'='*60}")
    print(f"{description}: {' '.join(cmd)}")
    print("=" * 60)

    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, check=False, cwd=Path(__file__).parent
        )
    except OSError as e:
        print(f"could not run: {e}")
        return False, str(e)

    output = result.stdout + result.stderr
    print("ok" if result.returncode == 0 else "FAILED")
    if output.strip():
        print(output)
    return result.returncode == 0, output


def main() -> int:
    results = [(desc, *run_command(cmd, desc)) for cmd, desc in COMMANDS]

    print(f"\n{'='*60}")
    print("Summary")
    print("=" * 60)
    for description, success, _ in results:
        print(f"{description}: {'passed' if success else 'FAILED'}")

    failed = [(d, out) for d, ok, out in results if not ok]
    for description, output in failed:
        if output.strip():
            print(f"\n--- {description} ---")
            print(output)
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
