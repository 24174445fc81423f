"""Allow ``python -m caroushell``."""

from caroushell.cli import main

main()
