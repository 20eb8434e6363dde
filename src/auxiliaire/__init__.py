"""auxiliaire - Backup of Exercism.org solutions to local disk."""

__version__ = "0.3.0"
