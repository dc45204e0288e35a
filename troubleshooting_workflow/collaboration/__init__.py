"""
Collaboration Layer - Injected Collaboration Channel
"""

from troubleshooting_workflow.collaboration.interface import (
    CollaborationChannel,
    NullCollaborationChannel,
    StaticCollaborationChannel,
)

__all__ = [
    "CollaborationChannel",
    "NullCollaborationChannel",
    "StaticCollaborationChannel",
]
