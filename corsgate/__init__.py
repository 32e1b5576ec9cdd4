"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Corsgate - Origin-gated CORS proxy gateway

Corsgate sits in front of an upstream forwarding engine and decides, per
request, whether traffic may pass: origin access control, CORS negotiation,
operator dashboard and stats routes, request accounting, and sanitization
of upstream forwarding failures.
"""

from corsgate._version import __version__

__all__ = ["__version__"]
