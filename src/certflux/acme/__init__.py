"""ACME transport abstraction and the ``acme``-library implementation."""

from certflux.acme.base import AcmeTransport

__all__ = ["AcmeTransport"]
