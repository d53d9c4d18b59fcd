"""certflux: ACME certificate renewal orchestrator.

Keeps CDN-hosted domains on fresh certificates by driving the ACME
account, order, challenge and finalization flow and pushing the
issued chain to the CDN edge.
"""

__version__ = "1.0.0"
