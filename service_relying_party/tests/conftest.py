"""
Shared fixtures for Relying Party service tests.
"""

import pytest

from service_relying_party.app.caching.transactional_cache import InMemoryTransactionalCache
from service_relying_party.app.config import RelyingPartyConfig
from service_relying_party.app.domain.models import Platform

from support import ISSUER, FakeClock, make_clients


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return InMemoryTransactionalCache(clock=clock)


@pytest.fixture
def isv_clients():
    return make_clients(Platform.ISV)


@pytest.fixture
def isva_clients():
    return make_clients(Platform.ISVA)


@pytest.fixture
def config_values():
    """Complete settings for an ISV deployment."""
    return {
        "platform": "ISV",
        "base_url": "https://tenant.verify.ibm.com",
        "fido2_relying_party_id": "0f3e2a10-5c3d-4c1e-9a9e-0c1d2e3f4a5b",
        "api_client_id": "api-client",
        "api_client_secret": "api-secret",
        "auth_client_id": "auth-client",
        "auth_client_secret": "auth-secret",
        "public_url": ISSUER,
    }


@pytest.fixture
def config(config_values):
    return RelyingPartyConfig(_env_file=None, **config_values)
