"""HTTP services for dualauth."""
