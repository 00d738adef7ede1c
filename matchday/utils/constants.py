"""
Constants used across the match and team services.
"""

from collections import namedtuple

from matchday.database.models import Variant

# Per-variant catalog: players needed on the pitch, default squad cap,
# and the squad size considered healthy (display only, never enforced).
VariantRules = namedtuple("VariantRules", ["min_players", "default_max_members", "default_min_members"])

VARIANT_RULES = {
    Variant.FOOTBALL_11: VariantRules(11, 25, 18),
    Variant.FOOTBALL_7: VariantRules(7, 15, 12),
    Variant.FOOTBALL_5: VariantRules(5, 10, 8),
    Variant.FUTSAL: VariantRules(5, 12, 8),
}

# Invitations
INVITATION_TOKEN_LENGTH = 32
INVITATION_EXPIRY_DAYS = 7

# Availability reminders go out this far ahead of kickoff
REMINDER_LEAD_HOURS = 48
DEFAULT_REMINDER_WINDOW_MINUTES = 15

# Match events
MAX_EVENT_MINUTE = 120
