"""Server plugins, a shared request context and utilities for an RPC framework."""

__version__ = "0.1.0"