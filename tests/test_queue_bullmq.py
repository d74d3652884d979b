"""Tests for the BullMQ queue provider against a stub Redis client."""

import fnmatch
import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from podscope.config.schema import QueueJobStatus, QueueProviderType, QueueQuery, RedisInstanceConfig
from podscope.core.errors import ProviderConnectionError, ProviderError
from podscope.queue.bullmq import BullMQProvider, BullProvider, parse_redis_instances


class StubRedisClient:
    """In-memory stand-in for redis.asyncio.Redis with decode_responses=True."""

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self.lists: dict[str, list[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.strings: dict[str, str] = {}
        self.fail = False
        self.closed = False
        self.pings = 0

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def ping(self) -> bool:
        self._check()
        self.pings += 1
        return True

    async def aclose(self) -> None:
        self.closed = True

    async def type(self, key: str) -> str:
        self._check()
        if key in self.lists:
            return "list"
        if key in self.zsets:
            return "zset"
        if key in self.hashes:
            return "hash"
        if key in self.strings:
            return "string"
        return "none"

    async def llen(self, key: str) -> int:
        return len(self.lists.get(key, []))

    async def zcard(self, key: str) -> int:
        return len(self.zsets.get(key, {}))

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        return self.lists.get(key, [])[start : end + 1]

    def _sorted(self, key: str) -> list[str]:
        return [member for member, _ in sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1])]

    async def zrange(self, key: str, start: int, end: int) -> list[str]:
        return self._sorted(key)[start : end + 1]

    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        return list(reversed(self._sorted(key)))[start : end + 1]

    async def hgetall(self, key: str) -> dict[str, str]:
        self._check()
        return dict(self.hashes.get(key, {}))

    async def exists(self, key: str) -> int:
        return int(key in self.lists or key in self.zsets or key in self.hashes or key in self.strings)

    async def scan_iter(self, match: str, count: int = 10):
        self._check()
        for key in list(self.strings) + list(self.lists) + list(self.zsets) + list(self.hashes):
            if fnmatch.fnmatchcase(key, match):
                yield key

    # Helpers for building BullMQ state
    def add_job(self, queue: str, job_id: str, state: str, score: float = 0, **fields: str) -> None:
        self.strings[f"bull:{queue}:id"] = job_id
        key = f"bull:{queue}:{state}"
        if state in ("wait", "active", "paused"):
            self.lists.setdefault(key, []).append(job_id)
        else:
            self.zsets.setdefault(key, {})[job_id] = score
        job = {"name": "send", "data": json.dumps({"to": "a@example.com"}), "timestamp": "1700000000000"}
        job.update(fields)
        self.hashes[f"bull:{queue}:{job_id}"] = job


def _provider(*clients: StubRedisClient, **kwargs) -> BullMQProvider:
    by_name = {client.name: client for client in clients}
    return BullMQProvider(client_factory=lambda instance: by_name[instance.name], environ={}, **kwargs)


def _connection(*names: str) -> dict:
    return {"instances": [{"name": name, "host": "localhost"} for name in names]}


class TestParseRedisInstances:
    def test_legacy_format(self):
        instances = parse_redis_instances("main:redis-1:6380:secret, jobs:redis-2::")
        assert [(i.name, i.host, i.port, i.password) for i in instances] == [
            ("main", "redis-1", 6380, "secret"),
            ("jobs", "redis-2", 6379, None),
        ]

    def test_bad_port(self):
        with pytest.raises(ProviderConnectionError):
            parse_redis_instances("main:host:notaport")

    def test_empty(self):
        assert parse_redis_instances("") == []


class TestResolveInstances:
    def test_inline_list(self):
        provider = BullMQProvider(environ={})
        instances = provider.resolve_instances(_connection("main"))
        assert instances == [RedisInstanceConfig(name="main", host="localhost")]

    def test_default_env_var(self):
        provider = BullMQProvider(environ={"REDIS_INSTANCES": "main:redis:6379:"})
        assert [i.host for i in provider.resolve_instances({"useEnv": True})] == ["redis"]

    def test_named_env_var(self):
        provider = BullMQProvider(environ={"QUEUE_REDIS": "q:queue-redis:6390:"})
        assert provider.resolve_instances({"envVar": "QUEUE_REDIS"})[0].port == 6390
        assert provider.resolve_instances({"instances": "QUEUE_REDIS"})[0].name == "q"

    def test_legacy_string_inline(self):
        provider = BullMQProvider(environ={})
        assert provider.resolve_instances({"instances": "a:h:1:"})[0].port == 1

    def test_invalid_connection(self):
        with pytest.raises(ProviderConnectionError):
            BullMQProvider(environ={}).resolve_instances({"instances": 42})


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_connect_pings_each_instance(self):
        main, jobs = StubRedisClient("main"), StubRedisClient("jobs")
        provider = _provider(main, jobs)
        await provider.connect(_connection("main", "jobs"))
        assert provider.connected
        assert provider.instance_names == ["main", "jobs"]
        assert main.pings == jobs.pings == 1

    @pytest.mark.asyncio
    async def test_connect_without_instances_fails(self):
        with pytest.raises(ProviderConnectionError):
            await _provider().connect({"useEnv": True})

    @pytest.mark.asyncio
    async def test_connect_failure_closes_opened_clients(self):
        main, broken = StubRedisClient("main"), StubRedisClient("broken")
        broken.fail = True
        provider = _provider(main, broken)

        with pytest.raises(ProviderConnectionError):
            await provider.connect(_connection("main", "broken"))
        assert main.closed
        assert not provider.connected

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self):
        client = StubRedisClient()
        provider = _provider(client)
        await provider.connect(_connection("default"))
        await provider.disconnect()
        await provider.disconnect()
        assert client.closed
        assert not await provider.is_healthy()

    @pytest.mark.asyncio
    async def test_is_healthy_never_raises(self):
        client = StubRedisClient()
        provider = _provider(client)
        await provider.connect(_connection("default"))
        assert await provider.is_healthy()

        client.fail = True
        assert await provider.is_healthy() is False


class TestQueues:
    @pytest.mark.asyncio
    async def test_list_queues_with_stats(self):
        client = StubRedisClient()
        client.add_job("emails", "1", "wait")
        client.add_job("emails", "2", "wait")
        client.add_job("emails", "3", "active")
        client.add_job("emails", "4", "failed", score=10)
        client.add_job("emails", "5", "completed", score=5)
        client.add_job("emails", "6", "delayed", score=99)
        client.add_job("emails", "7", "prioritized", score=1)
        client.add_job("reports", "1", "wait")
        provider = _provider(client)
        await provider.connect(_connection("default"))

        queues = await provider.list_queues()

        assert [q.name for q in queues] == ["emails", "reports"]
        emails = queues[0]
        assert emails.provider_type == QueueProviderType.BULLMQ
        assert emails.stats.to_dict() == {
            "waiting": 3,
            "active": 1,
            "completed": 1,
            "failed": 1,
            "delayed": 1,
        }
        assert emails.stats.total == 7
        assert not emails.paused

    @pytest.mark.asyncio
    async def test_paused_queue(self):
        client = StubRedisClient()
        client.add_job("emails", "1", "paused")
        provider = _provider(client)
        await provider.connect(_connection("default"))
        assert (await provider.get_queue_stats("emails")).paused

    @pytest.mark.asyncio
    async def test_list_queues_isolates_failing_instance(self):
        good, bad = StubRedisClient("good"), StubRedisClient("bad")
        good.add_job("emails", "1", "wait")
        provider = _provider(good, bad)
        await provider.connect(_connection("good", "bad"))
        bad.fail = True

        queues = await provider.list_queues()
        assert [(q.name, q.provider) for q in queues] == [("emails", "good")]


class TestJobs:
    @pytest.mark.asyncio
    async def test_failed_jobs_newest_first_and_limited(self):
        client = StubRedisClient()
        for i in range(30):
            client.add_job(
                "emails", str(i), "failed", score=i,
                failedReason="SMTP timeout", finishedOn=str(1700000000000 + i), attemptsMade="3",
            )
        provider = _provider(client)
        await provider.connect(_connection("default"))

        jobs = await provider.get_jobs(
            QueueQuery(provider="redis-bullmq", queue="emails", status="failed", limit=20)
        )

        assert len(jobs) == 20
        assert all(job.status == QueueJobStatus.FAILED for job in jobs)
        assert jobs[0].id == "29"
        assert jobs[0].error == "SMTP timeout"
        assert jobs[0].attempts == 3
        assert jobs[0].failed_at is not None
        assert jobs[0].data == {"to": "a@example.com"}

    @pytest.mark.asyncio
    async def test_waiting_is_default_status(self):
        client = StubRedisClient()
        client.add_job("emails", "1", "wait")
        client.add_job("emails", "2", "active")
        provider = _provider(client)
        await provider.connect(_connection("default"))

        jobs = await provider.get_jobs(QueueQuery(provider="p", queue="emails"))
        assert [(job.id, job.status) for job in jobs] == [("1", QueueJobStatus.WAITING)]

    @pytest.mark.asyncio
    async def test_instance_option_selects_client(self):
        main, other = StubRedisClient("main"), StubRedisClient("other")
        other.add_job("emails", "9", "wait")
        provider = _provider(main, other)
        await provider.connect(_connection("main", "other"))

        query = QueueQuery.model_validate(
            {"provider": "p", "queue": "emails", "providerOptions": {"instance": "other"}}
        )
        jobs = await provider.get_jobs(query)
        assert [(job.id, job.provider) for job in jobs] == [("9", "other")]

    @pytest.mark.asyncio
    async def test_unknown_instance(self):
        provider = _provider(StubRedisClient())
        await provider.connect(_connection("default"))
        query = QueueQuery.model_validate(
            {"provider": "p", "queue": "emails", "providerOptions": {"instance": "nope"}}
        )
        with pytest.raises(ProviderError):
            await provider.get_jobs(query)

    @pytest.mark.asyncio
    async def test_missing_job_hashes_skipped(self):
        client = StubRedisClient()
        client.add_job("emails", "1", "wait")
        client.lists["bull:emails:wait"].append("ghost")
        provider = _provider(client)
        await provider.connect(_connection("default"))

        jobs = await provider.get_jobs(QueueQuery(provider="p", queue="emails"))
        assert [job.id for job in jobs] == ["1"]

    @pytest.mark.asyncio
    async def test_io_failure_becomes_connection_error(self):
        client = StubRedisClient()
        client.add_job("emails", "1", "wait")
        provider = _provider(client)
        await provider.connect(_connection("default"))
        client.fail = True

        with pytest.raises(ProviderConnectionError):
            await provider.get_jobs(QueueQuery(provider="p", queue="emails"))

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        with pytest.raises(ProviderConnectionError):
            await _provider().get_jobs(QueueQuery(provider="p", queue="emails"))


def test_bull_provider_type():
    assert BullProvider.type == QueueProviderType.BULL
