"""Configuration, object helpers and flagd-proxy management for a feature-flag operator."""

__version__ = "0.1.0"

__all__ = ["common", "config", "flagdproxy", "utils"]