"""
Pydantic models for API request/response validation.
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator

from matchday.database.models import (
    Variant,
    TeamRole,
    PlayerPosition,
    MatchType,
    MatchEventType,
    CommendationCategory,
)


# Team schemas


class CreateTeamRequest(BaseModel):
    """Request to create a new team."""

    name: str = Field(min_length=1, max_length=255)
    variant: Variant
    description: Optional[str] = None
    logo_path: Optional[str] = None  # Set by the storage collaborator
    max_members: Optional[int] = Field(default=None, ge=1)


class UpdateTeamRequest(BaseModel):
    """Request to update a team. Only provided fields are changed."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    variant: Optional[Variant] = None
    description: Optional[str] = None
    logo_path: Optional[str] = None
    max_members: Optional[int] = Field(default=None, ge=1)


class UpdateMemberRoleRequest(BaseModel):
    """Request to change a member's role."""

    role: TeamRole

    @model_validator(mode="after")
    def validate_not_captain(self):
        """Captaincy only moves through a transfer."""
        if self.role == TeamRole.CAPTAIN:
            raise ValueError("Use the captaincy transfer endpoint to appoint a captain")
        return self


class UpdateMemberPositionRequest(BaseModel):
    """Request to set a member's preferred position."""

    position: Optional[PlayerPosition] = None


class TransferCaptaincyRequest(BaseModel):
    """Request to hand the captaincy to another member."""

    new_captain_id: int


class JoinRequestCreate(BaseModel):
    """Request to join a team."""

    message: Optional[str] = Field(default=None, max_length=500)


class CreateInvitationRequest(BaseModel):
    """Request to create an invitation link."""

    role: TeamRole = TeamRole.PLAYER
    email: Optional[str] = None

    @model_validator(mode="after")
    def validate_role(self):
        """Invitations can't create captains."""
        if self.role == TeamRole.CAPTAIN:
            raise ValueError("Invitations can only grant the player or co_captain role")
        return self


# Match schemas


class CreateFootballMatchRequest(BaseModel):
    """Request to publish an open match for a team."""

    team_id: int
    scheduled_at: datetime
    location: str = Field(min_length=1, max_length=255)
    location_coords: Optional[str] = Field(default=None, max_length=255)
    match_type: MatchType = MatchType.FRIENDLY
    notes: Optional[str] = None


class UpdateFootballMatchRequest(BaseModel):
    """Request to edit match logistics before kickoff."""

    scheduled_at: Optional[datetime] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    location_coords: Optional[str] = Field(default=None, max_length=255)
    match_type: Optional[MatchType] = None
    notes: Optional[str] = None


class UpdateScoreRequest(BaseModel):
    """Request to write the current score."""

    home_score: int = Field(ge=0)
    away_score: int = Field(ge=0)


class CreateMatchRequestRequest(BaseModel):
    """Request from a team to play an open match."""

    team_id: int
    message: Optional[str] = Field(default=None, max_length=500)


class UpdateAvailabilityRequest(BaseModel):
    """A player's availability for a match."""

    team_id: int
    status: str

    @model_validator(mode="after")
    def validate_status(self):
        """Pending is not something a player can report."""
        if self.status not in ("available", "maybe", "unavailable"):
            raise ValueError("Status must be one of: available, maybe, unavailable")
        return self


class LineupPlayer(BaseModel):
    """One entry of a lineup."""

    user_id: int
    position: Optional[PlayerPosition] = None
    is_starter: bool = True
    is_substitute: bool = False


class SetLineupRequest(BaseModel):
    """Full lineup for one team. Replaces whatever was stored before."""

    team_id: int
    players: List[LineupPlayer]


class RecordEventRequest(BaseModel):
    """An in-match event."""

    team_id: int
    event_type: MatchEventType
    user_id: Optional[int] = None
    minute: Optional[int] = Field(default=None, ge=0, le=120)
    description: Optional[str] = Field(default=None, max_length=500)


# Social schemas


class CommendationRequest(BaseModel):
    """Request to commend a player."""

    category: CommendationCategory


class ProfileCommentRequest(BaseModel):
    """Request to comment on a profile."""

    comment: str = Field(min_length=1, max_length=1000)
