"""Entry point for ``python -m nocta_cli`` and the ``nocta`` script."""

from __future__ import annotations

from typing import Sequence


def run(argv: Sequence[str] | None = None) -> int:
    from .main import main as cli_main

    return cli_main(argv)


def main() -> int:
    return run()


if __name__ == "__main__":
    raise SystemExit(run())
