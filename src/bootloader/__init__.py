"""Reconciles cloud load balancers for platform environments through terraform."""

__version__ = "0.1.0"
