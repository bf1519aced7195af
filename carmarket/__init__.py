"""Used-vehicle marketplace backend."""
