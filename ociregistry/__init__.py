"""Errors, descriptors, a registry interface and request parsing for OCI registries."""

__version__ = "0.1.0"
__all__ = ["errors", "iteration", "interface", "funcs", "request"]