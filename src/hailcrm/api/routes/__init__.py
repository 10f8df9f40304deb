"""API route modules."""

from . import cache, health, offline, routes  # noqa: F401
