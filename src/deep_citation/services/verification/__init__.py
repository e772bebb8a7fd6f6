"""Verification service client."""

from deep_citation.services.verification.client import DeepCitationClient
from deep_citation.services.verification.inflight import InFlightRegistry

__all__ = ["DeepCitationClient", "InFlightRegistry"]
