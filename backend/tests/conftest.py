import os

os.environ.setdefault("SECRET_KEY", "reportdesk-test-secret-key-0123456789")
os.environ.setdefault("ENV", "dev")

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from reportdesk.infra.redis import redis_client, set_redis_client
from reportdesk.moderation.domain import container
from reportdesk.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Most API tests authenticate via X-User-Id/X-User-Roles headers, which are only
	accepted in dev mode.
	"""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest.fixture(autouse=True)
def moderation_container():
	container.reset()
	try:
		yield
	finally:
		container.reset()


@pytest.fixture
def directory():
	return container.get_directory()


@pytest_asyncio.fixture
async def api_client():
	from reportdesk.main import app

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
