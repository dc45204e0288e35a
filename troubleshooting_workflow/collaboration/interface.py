"""
Collaboration Channel Interface.

Defines the contract for sharing workflow progress with other people.
The engine publishes step changes; analytics may ask for activity data.
Nothing here is simulated: a channel with no backend reports no activity.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class CollaborationChannel(ABC):
    @abstractmethod
    def publish_step_change(self, session_id: str, step_id: str) -> None:
        """Announces that the session's focus moved to `step_id`."""
        pass

    @abstractmethod
    def activity(self, session_id: str, time_range_days: int) -> List[Dict[str, Any]]:
        """
        Returns collaboration activity points for the metrics view
        (e.g. {"date": "2024-05-01", "collaborators": 2}).
        """
        pass


class NullCollaborationChannel(CollaborationChannel):
    """Collaboration disabled: publishes nowhere, reports no activity."""

    def publish_step_change(self, session_id: str, step_id: str) -> None:
        pass

    def activity(self, session_id: str, time_range_days: int) -> List[Dict[str, Any]]:
        return []


class StaticCollaborationChannel(CollaborationChannel):
    """
    Records published step changes and serves fixed activity data.
    Stands in for a real analytics backend in demos and tests.
    """

    def __init__(self, activity_data: Optional[List[Dict[str, Any]]] = None):
        self.activity_data = list(activity_data or [])
        self.published: List[Dict[str, str]] = []

    def publish_step_change(self, session_id: str, step_id: str) -> None:
        self.published.append({"session_id": session_id, "step_id": step_id})

    def activity(self, session_id: str, time_range_days: int) -> List[Dict[str, Any]]:
        return list(self.activity_data)
