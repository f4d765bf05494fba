import pytest

from conveyor import (
    ApiClient,
    CacheConfig,
    HttpPipeline,
    HttpxTransport,
    RetryConfig,
    SessionState,
)


def test_construct_defaults():
    p = HttpPipeline()
    assert isinstance(p.transport, HttpxTransport)
    assert p.retry_config.retry_attempts == 3  # noqa: PLR2004
    assert p.cache.ttl == 300.0  # noqa: PLR2004
    assert p.throttle_config.dispatch_delay == 0.5  # noqa: PLR2004
    assert p.session.state is SessionState.ANONYMOUS


def test_construct_from_flat_kwargs():
    p = HttpPipeline(retry_attempts=5, cache_ttl=10, dispatch_delay=0.1, auth_scheme="Token")
    assert p.retry_config.retry_attempts == 5  # noqa: PLR2004
    assert p.cache.ttl == 10  # noqa: PLR2004
    assert p.throttle_config.dispatch_delay == 0.1  # noqa: PLR2004
    assert p.session.config.scheme == "Token"


def test_config_object_wins_over_kwargs():
    p = HttpPipeline(retry_config=RetryConfig(retry_attempts=1), retry_attempts=9)
    assert p.retry_config.retry_attempts == 1


def test_wrong_config_type_rejected():
    with pytest.raises(TypeError):
        HttpPipeline(cache_config=RetryConfig())


def test_transport_strings():
    assert HttpPipeline(transport="aiohttp").transport.__class__.__name__ == "AiohttpTransport"
    assert HttpPipeline(transport="requests").transport.__class__.__name__ == "RequestsTransport"
    with pytest.raises(ValueError):
        HttpPipeline(transport="curl")


def test_quiet_paths_become_tuple():
    p = HttpPipeline(quiet_404_paths=["/a"], cache_config=CacheConfig(ttl=1))
    assert p.session.config.quiet_404_paths == ("/a",)


@pytest.mark.asyncio
async def test_closed_pipeline_rejects_requests(pipeline, transport):
    await pipeline.close()
    with pytest.raises(RuntimeError):
        await pipeline.get("/health")
    # caller-provided transport is not owned
    assert transport.closed is False


@pytest.mark.asyncio
async def test_api_client_groups(pipeline):
    client = ApiClient(pipeline)
    for group in (
        "auth",
        "users",
        "tasks",
        "disputes",
        "merchants",
        "analytics",
        "content",
        "forms",
        "uploads",
        "health",
        "security",
    ):
        assert getattr(client, group).pipeline is pipeline
