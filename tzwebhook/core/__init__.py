"""Decision and patch-generation engine (no I/O, no transport)."""
