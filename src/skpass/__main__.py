"""Allow ``python -m skpass``."""

from .cli import main

main()
