"""Draftboard: brief escrow funding and creator payout service."""

__version__ = "0.1.0"
__author__ = "Draftboard Team"

__all__ = ["__version__", "__author__"]
