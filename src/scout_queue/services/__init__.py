# src/scout_queue/services/__init__.py
"""Business logic services for the Scout Queue application."""

from .bounty import BountyService
from .projector import ProjectorService
from .voting import VotingService

__all__ = [
    "BountyService",
    "ProjectorService",
    "VotingService",
]
