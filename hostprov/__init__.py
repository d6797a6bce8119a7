"""hostprov — idempotent host provisioning pipeline."""

__version__ = "0.1.0"
