"""Application wiring for certflux."""

from certflux.app.factory import Runtime, create_runtime

__all__ = ["Runtime", "create_runtime"]
