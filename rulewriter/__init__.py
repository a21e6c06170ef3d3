"""Recording rule remote-write pipeline."""
