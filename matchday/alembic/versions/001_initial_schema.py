"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-09-28 10:00:00.000000

Creates the full schema from the models:
- Teams: users, teams, team_members, join_requests, team_invitations
- Matches: matches, match_requests, match_availability, match_lineups, match_events
- Social: notifications, user_commendations, profile_comments
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from matchday.database.db import Base
    from matchday.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from matchday.database.db import Base
    from matchday.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
