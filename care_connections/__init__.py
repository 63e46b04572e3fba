"""Therapist/client connection and connection-request workflow."""

__version__ = "0.1.0"

from .startup import bootstrap, configure_logging  # noqa: E402

__all__ = ["__version__", "bootstrap", "configure_logging"]
