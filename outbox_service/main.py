"""Main entry point for outbox-service.

Runs the CLI. Without arguments it starts the publisher worker, so a
container can use ``python -m outbox_service.main`` as its command.
"""

from __future__ import annotations

import sys
from typing import NoReturn


def main() -> NoReturn:
    """Route to the CLI; no arguments means ``worker run``."""
    from outbox_service.cli.main import main as cli_main

    if len(sys.argv) <= 1:
        sys.argv.extend(["worker", "run"])

    cli_main()
    sys.exit(0)


if __name__ == "__main__":
    main()
