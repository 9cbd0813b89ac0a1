"""PaySentry: real-time payment fraud scoring service."""

__version__ = "0.1.0"
