"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

CORS negotiation for Corsgate.

Broadcasts permissive CORS headers on every admitted request and answers
preflight requests directly. Admission is decided separately by the
origin access policy; the two are kept independent so rejected origins
never receive these headers.
"""

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Credentials": "true",
}

PREFLIGHT_METHOD = "OPTIONS"


class CorsNegotiator:
    """Applies CORS headers and short-circuits preflight requests."""

    def __init__(self, headers=None):
        self.headers = dict(headers or CORS_HEADERS)

    async def apply(self, method: str, response) -> bool:
        """
        Annotate the response with CORS headers.

        Args:
            method: HTTP method of the request
            response: ResponseHandle to annotate

        Returns:
            True if the request was a preflight and has been answered with 204
        """
        for name, value in self.headers.items():
            response.set_header(name, value)

        if method.upper() == PREFLIGHT_METHOD:
            response.write_head(204)
            await response.end()
            return True
        return False
