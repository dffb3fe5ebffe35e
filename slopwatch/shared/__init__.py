"""
Shared utilities and models for the SlopWatch vote service.

This package contains common code used by the API and the client:
- Statistics records (UserStats, GlobalStats, VoteResult)
- Identifier validation functions
- UTC calendar helpers
- Threshold and rate limit constants
"""

from .models import (
    UserStats,
    GlobalStats,
    VoteResult,
    validate_tweet_id_format,
    validate_user_id_format,
    utc_now,
    get_today,
    get_yesterday,
    ACCURACY_THRESHOLD,
    RATE_LIMIT,
    RATE_WINDOW_SECONDS,
    MAX_BATCH_IDS,
    MAX_TWEET_ID_LENGTH,
)

__all__ = [
    'UserStats',
    'GlobalStats',
    'VoteResult',
    'validate_tweet_id_format',
    'validate_user_id_format',
    'utc_now',
    'get_today',
    'get_yesterday',
    'ACCURACY_THRESHOLD',
    'RATE_LIMIT',
    'RATE_WINDOW_SECONDS',
    'MAX_BATCH_IDS',
    'MAX_TWEET_ID_LENGTH',
]
