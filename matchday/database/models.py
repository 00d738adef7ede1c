"""
SQLAlchemy ORM models for the Matchday football organizer.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from matchday.database.db import Base


def _str_enum(enum_cls):
    """Store a str enum by value; unknown strings are rejected at bind time."""
    return Enum(
        enum_cls,
        values_callable=lambda x: [e.value for e in x],
        native_enum=False,
        validate_strings=True,
        length=20,
    )


class Variant(str, enum.Enum):
    """Football format played by a team."""

    FOOTBALL_11 = "football_11"
    FOOTBALL_7 = "football_7"
    FOOTBALL_5 = "football_5"
    FUTSAL = "futsal"


class TeamRole(str, enum.Enum):
    """Role of a member within a team."""

    CAPTAIN = "captain"
    CO_CAPTAIN = "co_captain"
    PLAYER = "player"


LEADER_ROLES = (TeamRole.CAPTAIN, TeamRole.CO_CAPTAIN)


class MemberStatus(str, enum.Enum):
    """Team membership status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class PlayerPosition(str, enum.Enum):
    """Preferred playing position."""

    GOALKEEPER = "goalkeeper"
    DEFENDER = "defender"
    MIDFIELDER = "midfielder"
    FORWARD = "forward"


class JoinRequestStatus(str, enum.Enum):
    """Join request status enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class InvitationStatus(str, enum.Enum):
    """Team invitation status enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class MatchStatus(str, enum.Enum):
    """Match lifecycle status."""

    AVAILABLE = "available"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MatchType(str, enum.Enum):
    """Match type enum."""

    FRIENDLY = "friendly"
    COMPETITIVE = "competitive"


class MatchRequestStatus(str, enum.Enum):
    """Match request status enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class AvailabilityStatus(str, enum.Enum):
    """A player's self-reported availability for a match."""

    AVAILABLE = "available"
    MAYBE = "maybe"
    UNAVAILABLE = "unavailable"
    PENDING = "pending"


class MatchEventType(str, enum.Enum):
    """In-match event type."""

    GOAL = "goal"
    ASSIST = "assist"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"
    SUBSTITUTION_IN = "substitution_in"
    SUBSTITUTION_OUT = "substitution_out"


class CommendationCategory(str, enum.Enum):
    """Commendation category enum."""

    FRIENDLY = "friendly"
    SKILLED = "skilled"
    TEAMWORK = "teamwork"
    LEADERSHIP = "leadership"


class NotificationType(str, enum.Enum):
    """Notification type enum."""

    MATCH_REQUEST_RECEIVED = "match_request_received"
    MATCH_REQUEST_ACCEPTED = "match_request_accepted"
    MATCH_REQUEST_REJECTED = "match_request_rejected"
    MATCH_CANCELLED = "match_cancelled"
    MATCH_SCORE_UPDATED = "match_score_updated"
    AVAILABILITY_REMINDER = "availability_reminder"
    TEAM_INVITATION = "team_invitation"
    JOIN_REQUEST_RECEIVED = "join_request_received"
    JOIN_REQUEST_ACCEPTED = "join_request_accepted"
    COMMENDATION_RECEIVED = "commendation_received"
    PROFILE_COMMENT = "profile_comment"


class User(Base):
    """User accounts. Owned by the identity provider; read-only for the core."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    phone_number = Column(String, nullable=True)
    avatar_path = Column(String(500), nullable=True)  # Storage path, never inspected
    bio = Column(Text, nullable=True)
    position = Column(_str_enum(PlayerPosition), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    team_memberships = relationship("TeamMember", back_populates="user")

    __table_args__ = (Index("idx_users_email", "email"),)


class Team(Base):
    """Football teams."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    variant = Column(_str_enum(Variant), nullable=False)
    logo_path = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    max_members = Column(Integer, nullable=True)  # Null means the variant default applies
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    members = relationship("TeamMember", back_populates="team")
    creator = relationship("User", foreign_keys=[created_by])

    __table_args__ = (
        CheckConstraint("max_members IS NULL OR max_members > 0", name="ck_teams_max_members"),
        Index("idx_teams_variant", "variant"),
        Index("idx_teams_name", "name"),
    )


class TeamMember(Base):
    """Join table (User ↔ Team)."""

    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(_str_enum(TeamRole), default=TeamRole.PLAYER, nullable=False)
    position = Column(_str_enum(PlayerPosition), nullable=True)
    status = Column(_str_enum(MemberStatus), default=MemberStatus.ACTIVE, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    team = relationship("Team", back_populates="members")
    user = relationship("User", back_populates="team_memberships")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        Index("idx_team_members_team_role", "team_id", "role", "status"),
        Index("idx_team_members_user", "user_id"),
    )


class JoinRequest(Base):
    """User-initiated requests to join a team."""

    __tablename__ = "join_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        _str_enum(JoinRequestStatus), default=JoinRequestStatus.PENDING, nullable=False
    )
    message = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    team = relationship("Team")
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_join_requests_team_status", "team_id", "status"),
        Index("idx_join_requests_user_team", "user_id", "team_id"),
    )


class TeamInvitation(Base):
    """Leader-initiated tokenized invitations."""

    __tablename__ = "team_invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    email = Column(String, nullable=True)
    token = Column(String(32), nullable=False, unique=True)
    role = Column(_str_enum(TeamRole), default=TeamRole.PLAYER, nullable=False)
    status = Column(
        _str_enum(InvitationStatus), default=InvitationStatus.PENDING, nullable=False
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    team = relationship("Team")
    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        Index("idx_team_invitations_team_status", "team_id", "status"),
    )


class FootballMatch(Base):
    """Matches between a home team and an (eventually) accepted away team."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    home_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    away_team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    variant = Column(_str_enum(Variant), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=False)
    location_coords = Column(String(255), nullable=True)  # Opaque "lat,lng" string
    match_type = Column(_str_enum(MatchType), default=MatchType.FRIENDLY, nullable=False)
    status = Column(_str_enum(MatchStatus), default=MatchStatus.AVAILABLE, nullable=False)
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    home_team = relationship("Team", foreign_keys=[home_team_id])
    away_team = relationship("Team", foreign_keys=[away_team_id])
    creator = relationship("User", foreign_keys=[created_by])

    __table_args__ = (
        CheckConstraint("home_score IS NULL OR home_score >= 0", name="ck_matches_home_score"),
        CheckConstraint("away_score IS NULL OR away_score >= 0", name="ck_matches_away_score"),
        Index("idx_matches_status_scheduled", "status", "scheduled_at"),
        Index("idx_matches_home_team", "home_team_id"),
        Index("idx_matches_away_team", "away_team_id"),
    )


class MatchRequest(Base):
    """A team's bid to fill the away slot of an available match."""

    __tablename__ = "match_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    requesting_team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        _str_enum(MatchRequestStatus), default=MatchRequestStatus.PENDING, nullable=False
    )
    message = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    match = relationship("FootballMatch")
    requesting_team = relationship("Team")

    __table_args__ = (
        Index("idx_match_requests_match_status", "match_id", "status"),
        Index("idx_match_requests_team", "requesting_team_id"),
    )


class MatchAvailability(Base):
    """One player's availability for one match, per team side."""

    __tablename__ = "match_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        _str_enum(AvailabilityStatus), default=AvailabilityStatus.PENDING, nullable=False
    )
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    reminded_at = Column(DateTime(timezone=True), nullable=True)  # Reminder idempotency guard

    # Relationships
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("match_id", "user_id", "team_id", name="uq_match_availability_triple"),
        Index("idx_match_availability_match_team_status", "match_id", "team_id", "status"),
    )


class MatchLineup(Base):
    """Per-match, per-team roster entry."""

    __tablename__ = "match_lineups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    position = Column(_str_enum(PlayerPosition), nullable=True)
    is_starter = Column(Boolean, default=True, nullable=False)
    is_substitute = Column(Boolean, default=False, nullable=False)
    minutes_played = Column(Integer, default=0, nullable=False)

    # Relationships
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("match_id", "team_id", "user_id", name="uq_match_lineups_entry"),
        Index("idx_match_lineups_match_team", "match_id", "team_id"),
    )


class MatchEvent(Base):
    """Timestamped (by match minute) in-match occurrence."""

    __tablename__ = "match_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    event_type = Column(_str_enum(MatchEventType), nullable=False)
    minute = Column(Integer, nullable=True)
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User")

    __table_args__ = (
        CheckConstraint("minute IS NULL OR (minute >= 0 AND minute <= 120)", name="ck_match_events_minute"),
        Index("idx_match_events_match", "match_id", "minute"),
    )


class Notification(Base):
    """User notifications for in-app messaging."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)  # NotificationType enum value
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(Text, nullable=True)  # JSON string for flexible metadata (match_id, team_id, etc.)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    link_url = Column(String(500), nullable=True)  # Navigation target
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read", "created_at"),
    )


class UserCommendation(Base):
    """Commendation given by one player to another."""

    __tablename__ = "user_commendations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category = Column(_str_enum(CommendationCategory), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("from_user_id", "to_user_id", "category", name="uq_user_commendations"),
        Index("idx_user_commendations_to", "to_user_id"),
    )


class ProfileComment(Base):
    """Comment left on a user's profile."""

    __tablename__ = "profile_comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    profile_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    author = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_profile_comments_profile_created", "profile_user_id", "created_at"),
    )
