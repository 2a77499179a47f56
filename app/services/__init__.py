"""
Services package

Store-facing business logic used by the WebSocket gateway and REST routes.
"""

from . import membership_service, message_service, mention_service

__all__ = [
    "membership_service",
    "message_service",
    "mention_service",
]
