"""JSON snapshot persistence for the vote store.

The whole store is written to a single document after every vote toggle
and read back once at startup. Durability is best-effort: read and write
failures are logged and counted, never raised to request handlers.
"""
import json
import logging
import os
import tempfile
from typing import Callable, Dict, Optional

from prometheus_client import Counter

from slopwatch.shared.models import ACCURACY_THRESHOLD, UserStats, get_today, utc_now
from .rate_limiter import FixedWindowRateLimiter
from .store import VoteStore

logger = logging.getLogger(__name__)

snapshot_errors = Counter(
    "slopwatch_snapshot_errors_total",
    "Total number of snapshot read/write failures",
    ["operation"]
)


class PersistenceError(Exception):
    """Raised when the snapshot file cannot be read or written."""
    pass


class SnapshotStore:
    """
    Snapshot file with atomic replacement on write.

    Args:
        path: Location of the JSON document
    """

    def __init__(self, path: str):
        self.path = path

    def read(self) -> Optional[Dict]:
        """
        Read and parse the snapshot.

        Returns:
            The document, or None if no snapshot exists yet

        Raises:
            PersistenceError: The file exists but cannot be read or parsed
        """
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read snapshot {self.path}: {e}") from e

        if not isinstance(document, dict):
            raise PersistenceError(f"Snapshot {self.path} is not a JSON object")
        return document

    def write(self, document: Dict) -> None:
        """
        Write the snapshot through a temporary file and os.replace.

        Raises:
            PersistenceError: The document could not be written
        """
        folder = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".snapshot_", suffix=".json", dir=folder)
        except OSError as e:
            raise PersistenceError(f"Failed to write snapshot {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write snapshot {self.path}: {e}") from e
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def load(self) -> Optional[Dict]:
        """Read the snapshot, treating any failure as no prior state."""
        try:
            return self.read()
        except PersistenceError as e:
            snapshot_errors.labels(operation="load").inc()
            logger.error(f"Failed to load data, starting empty: {e}")
            return None

    def save(self, document: Dict) -> bool:
        """
        Write the snapshot, logging instead of raising on failure.

        Returns:
            bool: True if the snapshot was written
        """
        try:
            self.write(document)
            return True
        except PersistenceError as e:
            snapshot_errors.labels(operation="save").inc()
            logger.error(f"Failed to save data: {e}")
            return False


def needs_backfill(store: VoteStore) -> bool:
    """Legacy snapshots carry voters but no per-user statistics."""
    return not store.user_stats and bool(store.voters)


def backfill_user_stats(store: VoteStore, today: str) -> int:
    """
    Rebuild global totals and user statistics from raw counts and voters.

    Streak history cannot be reconstructed, so every user found this way
    gets a streak of 1 dated ``today``. Running it twice gives the same
    result.

    Args:
        store: Store restored from a legacy snapshot (mutated in place)
        today: YYYY-MM-DD used as the users' last vote date

    Returns:
        int: Number of user records created
    """
    confirmed = {
        tweet_id for tweet_id, count in store.counts.items()
        if count >= store.threshold
    }

    store.global_stats.total_posts = len(store.counts)
    store.global_stats.total_votes = sum(store.counts.values())
    store.global_stats.confirmed_slop = len(confirmed)
    store.credited = {tweet_id: list(store.voters.get(tweet_id, [])) for tweet_id in confirmed}

    user_stats: Dict[str, UserStats] = {}
    for tweet_id, voters in store.voters.items():
        is_confirmed = tweet_id in confirmed
        for voter_id in voters:
            stats = user_stats.get(voter_id)
            if stats is None:
                stats = UserStats(current_streak=1, longest_streak=1, last_vote_date=today)
                user_stats[voter_id] = stats
            stats.total_votes += 1
            if is_confirmed:
                stats.accurate_votes += 1

    store.user_stats = user_stats
    return len(user_stats)


def load_vote_store(
    snapshot: SnapshotStore,
    threshold: int = ACCURACY_THRESHOLD,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
    clock: Callable = utc_now
) -> VoteStore:
    """
    Build the vote store from the snapshot, migrating legacy data once.

    Args:
        snapshot: Persistence adapter, also attached to the returned store
        threshold: Confirmation threshold
        rate_limiter: Limiter for vote toggles
        clock: Returns the current aware UTC datetime

    Returns:
        VoteStore ready to serve requests
    """
    options = dict(threshold=threshold, rate_limiter=rate_limiter, snapshot=snapshot, clock=clock)
    document = snapshot.load()

    if document is None:
        logger.info(f"No prior state at {snapshot.path}, starting with an empty store")
        return VoteStore(**options)

    store = VoteStore.from_document(document, **options)

    if needs_backfill(store):
        logger.info("Migrating existing data to new stats format...")
        users = backfill_user_stats(store, get_today(clock()))
        snapshot.save(store.to_document())
        logger.info(f"Migration complete: {users} users, {len(store.counts)} posts")

    logger.info(
        f"Loaded {len(store.counts)} posts and {len(store.user_stats)} users "
        f"from {snapshot.path}"
    )
    return store
