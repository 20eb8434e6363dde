"""auxiliaire client: Exercism API access, local backup state and the CLI."""
