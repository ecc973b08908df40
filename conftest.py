"""Root conftest so `faceverify` and `scripts` import from a source checkout."""
