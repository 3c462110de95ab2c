"""dualauth: token validation and provider routing for dual-path web clients."""

__version__ = "0.3.0"
