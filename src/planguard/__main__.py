"""Allow ``python -m planguard``."""

from .cli import main

main()
