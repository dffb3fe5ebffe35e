"""Pydantic models for request/response validation."""
from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from slopwatch.shared.models import validate_tweet_id_format, validate_user_id_format


class VoteRequest(BaseModel):
    """Vote toggle request model."""

    tweetId: str = Field(..., description="Public numeric post ID (at most 25 digits)")
    userId: str = Field(..., description="Anonymous user ID (32 lowercase hex characters)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "tweetId": "1745092837465012345",
                "userId": "3f2b9c1d8e7a6b5c4d3e2f1a0b9c8d7e"
            }
        }
    )

    @field_validator("tweetId")
    @classmethod
    def validate_tweet_id(cls, v):
        """Validate tweetId is all digits and not too long."""
        if not validate_tweet_id_format(v):
            raise ValueError("Invalid tweetId")
        return v

    @field_validator("userId")
    @classmethod
    def validate_user_id(cls, v):
        """Validate userId is a 32 character lowercase hex token."""
        if not validate_user_id_format(v):
            raise ValueError("Invalid userId")
        return v


class VoteStatus(BaseModel):
    """Vote count of a post and whether the user voted on it."""

    count: int = Field(..., ge=0, description="Number of active votes")
    voted: bool = Field(..., description="Whether the requesting user has voted")

    model_config = ConfigDict(
        json_schema_extra={"example": {"count": 3, "voted": True}}
    )


class BatchVotesResponse(BaseModel):
    """Batch vote lookup response model."""

    votes: Dict[str, VoteStatus] = Field(..., description="Vote status per post ID")


class UserStatsResponse(BaseModel):
    """Per-user statistics response model."""

    totalVotes: int = Field(..., description="Active votes cast by the user")
    accurateVotes: int = Field(..., description="Votes on posts that reached the threshold")
    accuracy: int = Field(..., description="Percentage of accurate votes")
    currentStreak: int = Field(..., description="Current daily streak, 0 once lapsed")
    longestStreak: int = Field(..., description="Longest daily streak")
    lastVoteDate: str = Field(..., description="UTC date of the last new vote (YYYY-MM-DD)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "totalVotes": 42,
                "accurateVotes": 30,
                "accuracy": 71,
                "currentStreak": 4,
                "longestStreak": 9,
                "lastVoteDate": "2026-01-12"
            }
        }
    )


class GlobalStatsResponse(BaseModel):
    """Global statistics response model."""

    totalVotes: int = Field(..., description="Active votes across all posts")
    totalPosts: int = Field(..., description="Posts that ever received a vote")
    confirmedSlop: int = Field(..., description="Posts that ever reached the threshold")
    totalUsers: int = Field(..., description="Users who ever voted")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["ok"] = Field(default="ok", description="Service status")


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str = Field(..., description="Error message")

    model_config = ConfigDict(
        json_schema_extra={"example": {"detail": "Invalid tweetId"}}
    )
