"""capi - Cloud Foundry API CLI with multi-endpoint token management."""

__version__ = "0.1.0"
