"""Entry point for the hazkey command-line client.

Usage:
  poetry run python -m hazkey_client.hazkeyctl get-config
  poetry run python -m hazkey_client.hazkeyctl reload-model
"""

from __future__ import annotations

from hazkey_client.cli import hazkey_cli


def main() -> None:
    hazkey_cli(standalone_mode=True)


if __name__ == "__main__":
    main()
