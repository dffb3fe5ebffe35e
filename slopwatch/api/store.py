"""In-memory vote store with per-user statistics.

The store is the single authority for vote state. Every mutating request
goes through ``submit_vote``, which serializes the rate limit check, the
toggle and the snapshot write behind one lock. Read methods are plain
synchronous functions and never await, so on the event loop they always
see the state between two complete mutations.
"""
import asyncio
import logging
import math
from typing import Callable, Dict, Iterable, List, Optional

from prometheus_client import Counter

from slopwatch.shared.models import (
    ACCURACY_THRESHOLD,
    GlobalStats,
    UserStats,
    VoteResult,
    get_today,
    get_yesterday,
    utc_now,
)
from .rate_limiter import FixedWindowRateLimiter, RateLimitError

logger = logging.getLogger(__name__)

votes_toggled = Counter(
    "slopwatch_votes_toggled_total",
    "Total number of vote toggles applied",
    ["action"]
)
posts_confirmed = Counter(
    "slopwatch_posts_confirmed_total",
    "Total number of posts that reached the confirmation threshold"
)
rate_limited_requests = Counter(
    "slopwatch_rate_limited_total",
    "Total number of vote toggles rejected by the per-user rate limiter"
)


def update_streak(stats: UserStats, now) -> None:
    """
    Advance a user's daily streak for a newly cast vote.

    Args:
        stats: Statistics record of the voting user (mutated in place)
        now: Aware UTC datetime of the vote
    """
    today = get_today(now)

    if stats.last_vote_date == today:
        # Already voted today
        return

    if stats.last_vote_date == get_yesterday(now):
        stats.current_streak += 1
    else:
        stats.current_streak = 1

    stats.last_vote_date = today
    if stats.current_streak > stats.longest_streak:
        stats.longest_streak = stats.current_streak


def compute_accuracy(accurate_votes: int, total_votes: int) -> int:
    """Percentage of votes on confirmed posts, rounded half up."""
    if total_votes <= 0:
        return 0
    return int(math.floor(100 * accurate_votes / total_votes + 0.5))


class VoteStore:
    """
    Authoritative vote counts, voter sets and statistics.

    Args:
        threshold: Vote count at which a post becomes confirmed slop
        rate_limiter: Limiter consulted by submit_vote (None disables it)
        snapshot: Persistence adapter with a ``save(document)`` method
        clock: Returns the current aware UTC datetime
    """

    def __init__(
        self,
        threshold: int = ACCURACY_THRESHOLD,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        snapshot=None,
        clock: Callable = utc_now
    ):
        self.threshold = threshold
        self.rate_limiter = rate_limiter
        self.snapshot = snapshot
        self.clock = clock

        self.counts: Dict[str, int] = {}
        self.voters: Dict[str, List[str]] = {}
        # Presence of a key marks the post as confirmed
        self.credited: Dict[str, List[str]] = {}
        self.user_stats: Dict[str, UserStats] = {}
        self.global_stats = GlobalStats()

        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def submit_vote(self, tweet_id: str, user_id: str) -> VoteResult:
        """
        Rate-limit, toggle and persist one vote as a single serialized step.

        Args:
            tweet_id: Validated post identifier
            user_id: Validated anonymous user identifier

        Returns:
            VoteResult with the new count and voted state

        Raises:
            RateLimitError: The user's window is exhausted; nothing changed
        """
        async with self._lock:
            if self.rate_limiter is not None and not self.rate_limiter.check(user_id):
                rate_limited_requests.inc()
                raise RateLimitError(user_id, self.rate_limiter.retry_after(user_id))

            result = self.toggle_vote(tweet_id, user_id)

            if self.snapshot is not None:
                # The adapter logs and swallows write failures
                await asyncio.to_thread(self.snapshot.save, self.to_document())

            return result

    def toggle_vote(self, tweet_id: str, user_id: str) -> VoteResult:
        """
        Toggle ``user_id``'s vote on ``tweet_id``.

        Removing a vote never lowers confirmed_slop. Adding a vote advances
        the user's streak and counts the post whenever it leaves zero votes.

        Returns:
            VoteResult with the new count and voted state
        """
        voters = self.voters.setdefault(tweet_id, [])
        previous = self.counts.get(tweet_id, 0)
        is_new_post = previous == 0
        stats = self.user_stats.setdefault(user_id, UserStats())

        if user_id in voters:
            voters.remove(user_id)
            count = max(0, previous - 1)
            stats.total_votes = max(0, stats.total_votes - 1)
            self.global_stats.total_votes = max(0, self.global_stats.total_votes - 1)

            credited = self.credited.get(tweet_id)
            if credited is not None and user_id in credited:
                credited.remove(user_id)
                stats.accurate_votes = max(0, stats.accurate_votes - 1)

            voted = False
            votes_toggled.labels(action="remove").inc()
        else:
            voters.append(user_id)
            count = previous + 1
            stats.total_votes += 1
            self.global_stats.total_votes += 1

            update_streak(stats, self.clock())

            if is_new_post:
                self.global_stats.total_posts += 1

            voted = True
            votes_toggled.labels(action="add").inc()

        self.counts[tweet_id] = count
        self.check_threshold(tweet_id)

        return VoteResult(count=count, voted=voted)

    def check_threshold(self, tweet_id: str) -> bool:
        """
        Confirm a post the first time its count reaches the threshold.

        Every current voter is credited with an accurate vote. A post is
        confirmed at most once, whatever happens to its count afterwards.

        Returns:
            True if the post was confirmed by this call
        """
        if tweet_id in self.credited:
            return False
        if self.counts.get(tweet_id, 0) < self.threshold:
            return False

        voters = self.voters.get(tweet_id, [])
        self.global_stats.confirmed_slop += 1
        for voter_id in voters:
            stats = self.user_stats.get(voter_id)
            if stats is not None:
                stats.accurate_votes += 1
        self.credited[tweet_id] = list(voters)

        posts_confirmed.inc()
        logger.info(f"Post {tweet_id} confirmed as slop with {len(voters)} voters")
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_status(self, tweet_id: str, user_id: Optional[str] = None) -> VoteResult:
        """Vote count of a post and whether ``user_id`` voted on it."""
        count = self.counts.get(tweet_id, 0)
        voted = bool(user_id) and user_id in self.voters.get(tweet_id, ())
        return VoteResult(count=count, voted=voted)

    def get_votes(
        self,
        tweet_ids: Iterable[str],
        user_id: Optional[str] = None
    ) -> Dict[str, VoteResult]:
        """Batch version of get_status. Unknown posts report zero votes."""
        return {tweet_id: self.get_status(tweet_id, user_id) for tweet_id in tweet_ids}

    def get_user_stats(self, user_id: str) -> Dict:
        """
        Statistics of one user as returned by the API.

        The current streak is reported as 0 once the user has missed a full
        day, without touching the stored value.
        """
        stats = self.user_stats.get(user_id) or UserStats()
        now = self.clock()
        streak_active = stats.last_vote_date in (get_today(now), get_yesterday(now))

        return {
            "totalVotes": stats.total_votes,
            "accurateVotes": stats.accurate_votes,
            "accuracy": compute_accuracy(stats.accurate_votes, stats.total_votes),
            "currentStreak": stats.current_streak if streak_active else 0,
            "longestStreak": stats.longest_streak,
            "lastVoteDate": stats.last_vote_date,
        }

    def get_global_stats(self) -> Dict:
        """Aggregate totals plus the number of users who ever voted."""
        data = self.global_stats.to_dict()
        data["totalUsers"] = len(self.user_stats)
        return data

    # ------------------------------------------------------------------
    # Snapshot conversion
    # ------------------------------------------------------------------

    def to_document(self) -> Dict:
        """Serializable snapshot of the whole store."""
        return {
            "counts": dict(self.counts),
            "voters": {tweet_id: list(voters) for tweet_id, voters in self.voters.items()},
            "userStats": {user_id: stats.to_dict() for user_id, stats in self.user_stats.items()},
            "globalStats": self.global_stats.to_dict(),
            "credited": {tweet_id: list(voters) for tweet_id, voters in self.credited.items()},
        }

    @classmethod
    def from_document(cls, document: Dict, **kwargs) -> 'VoteStore':
        """
        Restore a store from a snapshot document.

        Missing sections default to empty. Item counts are reconciled with
        their voter lists and the global vote total with the item counts.
        Documents written without a ``credited`` section treat every post at
        or above the threshold as confirmed by its current voters.

        Args:
            document: Parsed snapshot
            **kwargs: Forwarded to the constructor

        Returns:
            VoteStore
        """
        store = cls(**kwargs)

        store.voters = {
            str(tweet_id): [str(v) for v in dict.fromkeys(voters or [])]
            for tweet_id, voters in (document.get("voters") or {}).items()
        }
        store.counts = {
            str(tweet_id): int(count)
            for tweet_id, count in (document.get("counts") or {}).items()
        }
        store.user_stats = {
            str(user_id): UserStats.from_dict(data or {})
            for user_id, data in (document.get("userStats") or {}).items()
        }
        store.global_stats = GlobalStats.from_dict(document.get("globalStats") or {})

        repaired = 0
        for tweet_id in set(store.counts) | set(store.voters):
            voters = store.voters.setdefault(tweet_id, [])
            if store.counts.get(tweet_id) != len(voters):
                store.counts[tweet_id] = len(voters)
                repaired += 1
        if repaired:
            logger.warning(f"Reconciled {repaired} post counts with their voter lists")

        total = sum(store.counts.values())
        if store.global_stats.total_votes != total:
            logger.warning(
                f"Global vote total {store.global_stats.total_votes} "
                f"does not match post counts, resetting to {total}"
            )
            store.global_stats.total_votes = total

        credited = document.get("credited")
        if credited is None:
            store.credited = {
                tweet_id: list(store.voters.get(tweet_id, []))
                for tweet_id, count in store.counts.items()
                if count >= store.threshold
            }
        else:
            store.credited = {
                str(tweet_id): [str(v) for v in voters or []]
                for tweet_id, voters in credited.items()
            }

        return store
