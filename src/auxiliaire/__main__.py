"""Allow running auxiliaire with ``python -m auxiliaire``."""

from auxiliaire.client.cli import main

main()
