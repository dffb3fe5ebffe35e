"""
Async client for the SlopWatch vote API.

Includes the anonymous identity supplier used by browser installations and
a batcher that folds many per-post status lookups issued in a short burst
into a single ``/votes`` request.
"""
import asyncio
import logging
import os
import secrets
from typing import Dict, List, Optional

import httpx

from slopwatch.shared.models import MAX_BATCH_IDS, validate_user_id_format

logger = logging.getLogger(__name__)


def generate_user_id() -> str:
    """Generate a random anonymous user ID (32 lowercase hex characters)."""
    return secrets.token_hex(16)


def load_or_create_user_id(path: str) -> str:
    """
    Return the user ID stored at ``path``, creating one if needed.

    Args:
        path: File holding the ID of this installation

    Returns:
        str: A valid user ID
    """
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            user_id = f.read().strip()
        if validate_user_id_format(user_id):
            return user_id
        logger.warning(f"Ignoring malformed user ID stored at {path}")

    user_id = generate_user_id()
    folder = os.path.dirname(os.path.abspath(path))
    os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(user_id)
    return user_id


class SlopWatchClient:
    """
    Thin async wrapper around the HTTP API.

    Non-2xx responses raise httpx.HTTPStatusError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> 'SlopWatchClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Dict:
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def vote(self, tweet_id: str, user_id: str) -> Dict:
        """Toggle a vote. Returns {count, voted}."""
        return await self._request("POST", "/vote", json={"tweetId": tweet_id, "userId": user_id})

    async def get_votes(self, tweet_ids: List[str], user_id: Optional[str] = None) -> Dict[str, Dict]:
        """Batch lookup. Returns {tweetId: {count, voted}}."""
        params = {"ids": ",".join(tweet_ids)}
        if user_id:
            params["userId"] = user_id
        data = await self._request("GET", "/votes", params=params)
        return data["votes"]

    async def get_status(self, tweet_id: str, user_id: str) -> Dict:
        return await self._request("GET", f"/status/{tweet_id}/{user_id}")

    async def get_user_stats(self, user_id: str) -> Dict:
        return await self._request("GET", f"/stats/user/{user_id}")

    async def get_global_stats(self) -> Dict:
        return await self._request("GET", "/stats/global")

    async def health(self) -> Dict:
        return await self._request("GET", "/health")


class VoteStatusBatcher:
    """
    Debounced aggregation of status lookups.

    Every ``get`` restarts a short timer; when it fires, all pending post IDs
    are fetched with as few ``/votes`` calls as the batch limit allows and
    every waiter receives its post's {count, voted}. A failed call fails the
    waiters of that flush.

    Args:
        client: API client
        user_id: User whose voted flag is requested
        delay: Quiet period in seconds before a flush
        max_batch: Maximum IDs per request
    """

    def __init__(
        self,
        client: SlopWatchClient,
        user_id: str,
        delay: float = 0.1,
        max_batch: int = MAX_BATCH_IDS
    ):
        self.client = client
        self.user_id = user_id
        self.delay = delay
        self.max_batch = max_batch
        self._pending: Dict[str, List[asyncio.Future]] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set = set()

    async def get(self, tweet_id: str) -> Dict:
        """Queue a lookup for ``tweet_id`` and wait for the batched result."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.setdefault(tweet_id, []).append(future)

        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.delay, self._schedule_flush)

        return await future

    def _schedule_flush(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Fetch every pending post now."""
        pending, self._pending = self._pending, {}
        tweet_ids = list(pending)

        for start in range(0, len(tweet_ids), self.max_batch):
            chunk = tweet_ids[start:start + self.max_batch]
            try:
                votes = await self.client.get_votes(chunk, self.user_id)
            except Exception as e:
                logger.error(f"Failed to fetch votes for {len(chunk)} posts: {e}")
                for tweet_id in chunk:
                    for future in pending[tweet_id]:
                        if not future.done():
                            future.set_exception(e)
                continue

            for tweet_id in chunk:
                # Posts the server skipped as malformed report no votes
                result = votes.get(tweet_id, {"count": 0, "voted": False})
                for future in pending[tweet_id]:
                    if not future.done():
                        future.set_result(result)
