"""Helpers for consumers that inspect raw queue bodies."""

from __future__ import annotations

from .envelope import (
    ErrorEnvelope,
    ReferenceEnvelope,
    is_error_envelope,
    is_reference_envelope,
)


def reference_envelope(body: str | None) -> ReferenceEnvelope | None:
    """Parse *body* if it is a reference envelope, else return None."""
    if body is None or not is_reference_envelope(body):
        return None
    return ReferenceEnvelope.from_json(body)


def error_envelope(body: str | None) -> ErrorEnvelope | None:
    """Parse *body* if it is an error envelope, else return None.

    Received bodies are error envelopes when an offloaded payload could not
    be reconstructed.
    """
    if body is None or not is_error_envelope(body):
        return None
    return ErrorEnvelope.from_json(body)
