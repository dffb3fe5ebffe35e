"""Unit tests for vote toggling, threshold confirmation and queries."""

import asyncio

import pytest

from slopwatch.api.rate_limiter import FixedWindowRateLimiter, RateLimitError
from slopwatch.api.store import VoteStore, compute_accuracy


def assert_consistent(store: VoteStore):
    """Counts match voter lists and the global total matches the counts."""
    for tweet_id, count in store.counts.items():
        assert count == len(store.voters[tweet_id])
        assert len(set(store.voters[tweet_id])) == count
    assert store.global_stats.total_votes == sum(store.counts.values())
    for stats in store.user_stats.values():
        assert 0 <= stats.accurate_votes <= stats.total_votes
        assert stats.current_streak <= stats.longest_streak


class RecordingSnapshot:
    """Persistence adapter double that keeps every saved document."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.documents = []

    def save(self, document):
        self.documents.append(document)
        return self.succeed


class TestToggleVote:
    """Tests for VoteStore.toggle_vote."""

    def test_first_vote_then_toggle_off(self, store, user_a):
        result = store.toggle_vote("1001", user_a)
        assert (result.count, result.voted) == (1, True)

        result = store.toggle_vote("1001", user_a)
        assert (result.count, result.voted) == (0, False)

        assert store.user_stats[user_a].total_votes == 0
        assert store.global_stats.total_votes == 0
        assert_consistent(store)

    @pytest.mark.parametrize("toggles", [1, 2, 5, 8])
    def test_voted_state_follows_toggle_parity(self, store, user_a, toggles):
        for _ in range(toggles):
            result = store.toggle_vote("1001", user_a)

        assert result.voted is (toggles % 2 == 1)
        assert result.count == (1 if toggles % 2 else 0)
        assert_consistent(store)

    def test_records_created_lazily(self, store, user_a):
        assert store.counts == {}
        assert store.user_stats == {}

        store.toggle_vote("1001", user_a)

        assert "1001" in store.counts
        assert user_a in store.user_stats

    def test_removed_vote_keeps_item_record(self, store, user_a):
        store.toggle_vote("1001", user_a)
        store.toggle_vote("1001", user_a)

        assert store.counts["1001"] == 0
        assert store.voters["1001"] == []

    def test_total_posts_counts_each_rise_from_zero(self, store, user_a):
        store.toggle_vote("1001", user_a)
        store.toggle_vote("1001", user_a)
        store.toggle_vote("1001", user_a)

        assert store.global_stats.total_posts == 2

    def test_second_voter_does_not_count_post_again(self, store, user_a, user_b):
        store.toggle_vote("1001", user_a)
        store.toggle_vote("1001", user_b)

        assert store.global_stats.total_posts == 1

    def test_global_total_matches_counts_over_mixed_sequence(self, store, user_a, user_b, user_c):
        sequence = [
            ("1", user_a), ("1", user_b), ("2", user_a), ("1", user_a),
            ("3", user_c), ("2", user_b), ("2", user_a), ("1", user_c),
        ]
        for tweet_id, user_id in sequence:
            store.toggle_vote(tweet_id, user_id)
            assert_consistent(store)

        assert store.global_stats.total_votes == 4
        assert store.user_stats[user_a].total_votes == 0


class TestThresholdCheck:
    """Tests for confirmed slop crediting."""

    def test_third_vote_confirms_and_credits_all_voters(self, store, user_a, user_b, user_c):
        store.toggle_vote("1001", user_a)
        store.toggle_vote("1001", user_b)
        assert store.global_stats.confirmed_slop == 0

        result = store.toggle_vote("1001", user_c)

        assert result.count == 3
        assert store.global_stats.confirmed_slop == 1
        for user_id in (user_a, user_b, user_c):
            assert store.user_stats[user_id].accurate_votes == 1
        assert_consistent(store)

    def test_later_votes_do_not_refire(self, store, user_a, user_b, user_c):
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)

        store.toggle_vote("1001", "d" * 32)

        assert store.global_stats.confirmed_slop == 1
        assert store.user_stats["d" * 32].accurate_votes == 0
        assert store.user_stats[user_a].accurate_votes == 1

    def test_dropping_below_and_returning_does_not_refire(self, store, user_a, user_b, user_c):
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)

        store.toggle_vote("1001", user_c)
        assert store.counts["1001"] == 2
        assert store.global_stats.confirmed_slop == 1

        store.toggle_vote("1001", user_c)
        assert store.counts["1001"] == 3
        assert store.global_stats.confirmed_slop == 1
        assert store.user_stats[user_a].accurate_votes == 1

    def test_confirmed_slop_never_decreases(self, store, user_a, user_b, user_c):
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)

        assert store.counts["1001"] == 0
        assert store.global_stats.confirmed_slop == 1

    def test_removing_credited_vote_withdraws_credit(self, store, user_a, user_b, user_c):
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)

        store.toggle_vote("1001", user_a)

        assert store.user_stats[user_a].total_votes == 0
        assert store.user_stats[user_a].accurate_votes == 0
        assert store.user_stats[user_b].accurate_votes == 1
        assert_consistent(store)

    def test_only_the_crossing_item_is_credited(self, store, user_a, user_b, user_c):
        store.toggle_vote("2002", user_a)
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)

        stats = store.user_stats[user_a]
        assert stats.total_votes == 2
        assert stats.accurate_votes == 1

    def test_custom_threshold(self, clock, user_a, user_b):
        store = VoteStore(threshold=2, clock=clock)
        store.toggle_vote("1001", user_a)
        store.toggle_vote("1001", user_b)

        assert store.global_stats.confirmed_slop == 1


class TestQueries:
    """Tests for read-only lookups."""

    def test_unknown_item_status_does_not_create_record(self, store, user_a):
        result = store.get_status("424242", user_a)

        assert (result.count, result.voted) == (0, False)
        assert "424242" not in store.counts
        assert "424242" not in store.voters

    def test_status_reports_voted_per_user(self, store, user_a, user_b):
        store.toggle_vote("1001", user_a)

        assert store.get_status("1001", user_a).voted is True
        assert store.get_status("1001", user_b).voted is False
        assert store.get_status("1001", None).voted is False
        assert store.get_status("1001", user_b).count == 1

    def test_get_votes_batch(self, store, user_a, user_b):
        store.toggle_vote("1", user_a)
        store.toggle_vote("2", user_b)

        votes = store.get_votes(["1", "2", "3"], user_a)

        assert {k: v.to_dict() for k, v in votes.items()} == {
            "1": {"count": 1, "voted": True},
            "2": {"count": 1, "voted": False},
            "3": {"count": 0, "voted": False},
        }

    def test_unknown_user_stats_are_zero(self, store):
        assert store.get_user_stats("f" * 32) == {
            "totalVotes": 0,
            "accurateVotes": 0,
            "accuracy": 0,
            "currentStreak": 0,
            "longestStreak": 0,
            "lastVoteDate": "",
        }
        assert store.user_stats == {}

    def test_user_stats_accuracy(self, store, user_a, user_b, user_c):
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)
        store.toggle_vote("2002", user_a)
        store.toggle_vote("3003", user_a)

        stats = store.get_user_stats(user_a)

        assert stats["totalVotes"] == 3
        assert stats["accurateVotes"] == 1
        assert stats["accuracy"] == 33
        assert stats["currentStreak"] == 1
        assert stats["lastVoteDate"] == "2026-01-12"

    @pytest.mark.parametrize("accurate,total,expected", [
        (0, 0, 0),
        (2, 3, 67),
        (1, 8, 13),
        (1, 200, 1),
        (5, 5, 100),
    ])
    def test_compute_accuracy_rounds_half_up(self, accurate, total, expected):
        assert compute_accuracy(accurate, total) == expected

    def test_global_stats(self, store, user_a, user_b, user_c):
        for user_id in (user_a, user_b, user_c):
            store.toggle_vote("1001", user_id)
        store.toggle_vote("2002", user_a)
        store.toggle_vote("2002", user_a)

        assert store.get_global_stats() == {
            "totalVotes": 3,
            "totalPosts": 2,
            "confirmedSlop": 1,
            "totalUsers": 3,
        }


@pytest.mark.asyncio
class TestSubmitVote:
    """Tests for the serialized rate limit, toggle and persist path."""

    async def test_submit_persists_snapshot(self, clock, user_a):
        snapshot = RecordingSnapshot()
        store = VoteStore(snapshot=snapshot, clock=clock)

        result = await store.submit_vote("1001", user_a)

        assert (result.count, result.voted) == (1, True)
        assert len(snapshot.documents) == 1
        document = snapshot.documents[0]
        assert document["counts"] == {"1001": 1}
        assert document["voters"] == {"1001": [user_a]}
        assert document["userStats"][user_a]["totalVotes"] == 1
        assert document["globalStats"] == {"totalVotes": 1, "totalPosts": 1, "confirmedSlop": 0}

    async def test_failed_save_keeps_mutation(self, clock, user_a):
        store = VoteStore(snapshot=RecordingSnapshot(succeed=False), clock=clock)

        result = await store.submit_vote("1001", user_a)

        assert result.voted is True
        assert store.counts["1001"] == 1

    async def test_rate_limited_request_changes_nothing(self, clock, timer, user_a):
        snapshot = RecordingSnapshot()
        limiter = FixedWindowRateLimiter(limit=2, window_seconds=60, clock=timer)
        store = VoteStore(rate_limiter=limiter, snapshot=snapshot, clock=clock)

        await store.submit_vote("1", user_a)
        await store.submit_vote("2", user_a)

        with pytest.raises(RateLimitError) as exc_info:
            await store.submit_vote("3", user_a)

        assert exc_info.value.retry_after == pytest.approx(60)
        assert "3" not in store.counts
        assert store.user_stats[user_a].total_votes == 2
        assert len(snapshot.documents) == 2

    async def test_concurrent_votes_on_one_item(self, clock):
        store = VoteStore(snapshot=RecordingSnapshot(), clock=clock)
        users = [f"{i:032x}" for i in range(50)]

        results = await asyncio.gather(*(store.submit_vote("1001", u) for u in users))

        assert sorted(r.count for r in results) == list(range(1, 51))
        assert store.counts["1001"] == 50
        assert store.global_stats.confirmed_slop == 1
        assert_consistent(store)

    async def test_concurrent_toggles_by_one_user(self, clock, user_a):
        store = VoteStore(snapshot=RecordingSnapshot(), clock=clock)

        await asyncio.gather(*(store.submit_vote("1001", user_a) for _ in range(10)))

        assert store.get_status("1001", user_a).voted is False
        assert store.counts["1001"] == 0
        assert_consistent(store)
