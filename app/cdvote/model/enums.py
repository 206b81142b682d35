"""
Enums for CD Vote model.
"""

import enum


class ElectionStatusEnum(str, enum.Enum):
    pending = "PENDING"
    open = "OPEN"
    closed = "CLOSED"


class ActivityTypeEnum(str, enum.Enum):
    vote_cast = "vote_cast"
    system_check = "system_check"
    admin_action = "admin_action"
    election_change = "election_change"


class VoteErrorEnum(str, enum.Enum):
    not_authenticated = "not_authenticated"
    election_not_found = "election_not_found"
    election_not_open = "election_not_open"
    not_eligible = "not_eligible"
    invalid_choices = "invalid_choices"
    already_voted = "already_voted"
    storage_error = "storage_error"


class WinnerStatusEnum(str, enum.Enum):
    winner = "winner"
    abstain_wins = "abstain_wins"
    tie = "tie"
    no_candidates = "no_candidates"
    no_votes = "no_votes"


class MatchTypeEnum(str, enum.Enum):
    exact = "exact"
    partial = "partial"
    none = "none"
