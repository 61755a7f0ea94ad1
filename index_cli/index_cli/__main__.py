"""Entry point for `python -m index_cli` and the `fplindex` console script."""

from __future__ import annotations

from index_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
