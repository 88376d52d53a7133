"""FlightFinder: web and command line front ends for the flight booking demo."""
from typing import TYPE_CHECKING, Any

from .cli import main as cli_main

if TYPE_CHECKING:  # pragma: no cover - import for type hints only
    from .web import create_app as _create_app


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = ["cli_main", "create_app"]
