"""Allow ``python -m flightfinder``."""
import sys

from .cli import main

sys.exit(main())
