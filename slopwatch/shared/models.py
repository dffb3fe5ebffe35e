"""
Shared data models and utilities for the SlopWatch vote service.

This module contains:
- UserStats / GlobalStats: per-user and aggregate statistics records
- VoteResult: the (count, voted) pair returned for an item
- Identifier validation functions
- UTC calendar helpers used by streak tracking
"""

import re
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any


# Posts with this many votes count as "confirmed slop"
ACCURACY_THRESHOLD = 3

# Per-user fixed window limits for vote toggles
RATE_LIMIT = 30
RATE_WINDOW_SECONDS = 60

# Batch lookups
MAX_BATCH_IDS = 100
MAX_TWEET_ID_LENGTH = 25

DATE_FORMAT = "%Y-%m-%d"

TWEET_ID_PATTERN = re.compile(r"^\d+$")
USER_ID_PATTERN = re.compile(r"^[a-f0-9]{32}$")


@dataclass
class UserStats:
    """
    Engagement statistics for one anonymous user.

    Attributes:
        total_votes: Net active votes cast by the user across all items
        accurate_votes: Votes credited on items that reached the threshold
        current_streak: Consecutive UTC days with at least one new vote
        longest_streak: Historical maximum of current_streak
        last_vote_date: YYYY-MM-DD of the last new vote, empty if never voted
    """
    total_votes: int = 0
    accurate_votes: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_vote_date: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase layout used on disk and on the wire."""
        return {
            "totalVotes": self.total_votes,
            "accurateVotes": self.accurate_votes,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastVoteDate": self.last_vote_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserStats':
        """Create UserStats from a camelCase dictionary."""
        return cls(
            total_votes=int(data.get("totalVotes", 0)),
            accurate_votes=int(data.get("accurateVotes", 0)),
            current_streak=int(data.get("currentStreak", 0)),
            longest_streak=int(data.get("longestStreak", 0)),
            last_vote_date=str(data.get("lastVoteDate") or ""),
        )


@dataclass
class GlobalStats:
    """
    Aggregate statistics across all items.

    Attributes:
        total_votes: Sum of all active votes (equals the sum of item counts)
        total_posts: Times an item went from zero votes to one
        confirmed_slop: Items that ever reached the threshold (never decremented)
    """
    total_votes: int = 0
    total_posts: int = 0
    confirmed_slop: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalVotes": self.total_votes,
            "totalPosts": self.total_posts,
            "confirmedSlop": self.confirmed_slop,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GlobalStats':
        return cls(
            total_votes=int(data.get("totalVotes", 0)),
            total_posts=int(data.get("totalPosts", 0)),
            confirmed_slop=int(data.get("confirmedSlop", 0)),
        )


@dataclass
class VoteResult:
    """Vote count of an item and whether the asking user has voted on it."""
    count: int
    voted: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_tweet_id_format(tweet_id: Any) -> bool:
    """
    Validate a post identifier.

    Args:
        tweet_id: Public numeric post ID

    Returns:
        bool: True if it is all digits and at most 25 characters
    """
    return (
        isinstance(tweet_id, str)
        and len(tweet_id) <= MAX_TWEET_ID_LENGTH
        and TWEET_ID_PATTERN.fullmatch(tweet_id) is not None
    )


def validate_user_id_format(user_id: Any) -> bool:
    """
    Validate an anonymous user identifier.

    Args:
        user_id: 32-character lowercase hex token

    Returns:
        bool: True if valid format
    """
    return isinstance(user_id, str) and USER_ID_PATTERN.fullmatch(user_id) is not None


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_today(now: Optional[datetime] = None) -> str:
    """
    Get the current UTC calendar date.

    Args:
        now: Reference time (defaults to the current time)

    Returns:
        str: YYYY-MM-DD
    """
    if now is None:
        now = utc_now()
    return now.astimezone(timezone.utc).strftime(DATE_FORMAT)


def get_yesterday(now: Optional[datetime] = None) -> str:
    """Get the UTC calendar date one day before ``now`` as YYYY-MM-DD."""
    if now is None:
        now = utc_now()
    return get_today(now - timedelta(days=1))
