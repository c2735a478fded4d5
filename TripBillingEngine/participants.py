"""
Participants Module

This module defines the participant (group member) record used by the
trip billing engine.

Features:
    - Participant record with dict conversion
    - Soft-delete support (removed members keep their balance history)
    - Active-member filtering for equal splits

Data Model:
    Participant fields:
        - participant_id: string (opaque, stable for the life of the group)
        - name: string (display label; legacy expenses may reference it)
        - is_deleted: bool (soft-delete flag)

Functions:
    get_active_participants: Filter out soft-deleted participants.
"""

from typing import Optional


class Participant:
    """
    Represents a member of a trip group.

    Attributes:
        participant_id (str): Unique identifier for the participant.
        name (str): Display name of the participant.
        is_deleted (bool): True if the participant left the group. Soft-deleted
            participants still take part in balance computation.
    """

    def __init__(
        self,
        participant_id: str,
        name: Optional[str] = None,
        is_deleted: bool = False
    ):
        self.participant_id = participant_id
        self.name = name if name is not None else participant_id
        self.is_deleted = is_deleted

    def to_dict(self) -> dict:
        """Convert participant to a plain dictionary."""
        return {
            "participant_id": self.participant_id,
            "name": self.name,
            "is_deleted": self.is_deleted
        }

    def __repr__(self) -> str:
        return f"Participant(id='{self.participant_id}', name='{self.name}', deleted={self.is_deleted})"

    @classmethod
    def from_dict(cls, data: dict) -> "Participant":
        """Create a Participant instance from a dictionary."""
        return cls(
            participant_id=data.get("participant_id"),
            name=data.get("name"),
            is_deleted=bool(data.get("is_deleted", False))
        )


def get_active_participants(participants: list[dict]) -> list[dict]:
    """
    Get participants that are current members of the group.

    Args:
        participants: List of participant dicts.

    Returns:
        list[dict]: Participants whose is_deleted flag is not set, in input order.
    """
    return [p for p in participants if not p.get("is_deleted", False)]

