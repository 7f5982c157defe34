"""Main entry point for running the Backbone API service."""

import asyncio
import sys

from backbone.infrastructure.server import (
    ConfigurationError,
    LifecycleController,
    LifecycleState,
)


def main() -> None:
    """Run the service until it is told to stop.

    Exits with status 1 when the configuration is invalid or the listener
    cannot be bound, and 0 after a clean or forced drain.
    """
    try:
        controller = LifecycleController.bootstrap()
    except ConfigurationError as exc:
        sys.stderr.write(f"failed to load configuration: {exc}\n")
        raise SystemExit(1) from exc

    final_state = asyncio.run(controller.run())
    if final_state is LifecycleState.FAILED:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
