"""Relay service forwarding parcel tracking lookups to the upstream tracking API."""

__version__ = "0.1.0"

__all__ = ["__version__"]
