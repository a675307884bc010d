"""Helpers shared across octpkg: logging, HTTP and filesystem utilities."""
