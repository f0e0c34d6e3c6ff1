"""clamm command line interface."""
