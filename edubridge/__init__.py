"""Edubridgepeople: a community platform connecting students and donors."""

__version__ = "0.1.0"
