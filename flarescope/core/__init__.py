"""Discovery and state-resolution core."""
