"""kioskctl command-line interface."""
