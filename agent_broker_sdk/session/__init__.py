"""Conversational sessions with discovered agents."""

from .broker import (
    NegotiationEvent,
    NegotiationState,
    SessionBroker,
    SessionHandle,
    coerce_preference,
    transition,
)

__all__ = [
    "NegotiationEvent",
    "NegotiationState",
    "SessionBroker",
    "SessionHandle",
    "coerce_preference",
    "transition",
]
