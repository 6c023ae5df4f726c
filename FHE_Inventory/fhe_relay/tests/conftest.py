import time

import fakeredis
import pytest
import pytest_asyncio
from eth_account import Account
from httpx import ASGITransport, AsyncClient

from FHE_Inventory.fhe_client.relay_client import DisclosureClient
from FHE_Inventory.fhe_client.signer import LocalAccountSigner
from FHE_Inventory.fhe_relay import api
from FHE_Inventory.fhe_relay.store import HandleStore
from FHE_Inventory.fhe_shared.envelope import build_envelope, envelope_typed_data
from FHE_Inventory.fhe_shared.key_engine import generate_keypair
from FHE_Inventory.fhe_shared.types import HandlePair, SignedAuthorization

GAME = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
RELAY_URL = "http://relay.test"


# ─── Fakeredis fixtures (no Docker) ───

@pytest.fixture
def fake_store_client():
    r = fakeredis.FakeRedis()
    yield r
    r.flushdb()
    r.close()


@pytest.fixture
def store(fake_store_client):
    return HandleStore(fake_store_client)


@pytest.fixture(autouse=True)
def _inject_store(store):
    """Point the API module at the fakeredis-backed store."""
    api.store = store
    yield
    api.store = None


# ─── Accounts ───

@pytest.fixture
def owner_account():
    return Account.create()


@pytest.fixture
def stranger_account():
    return Account.create()


@pytest.fixture
def owner_signer(owner_account):
    return LocalAccountSigner(owner_account.key.hex())


# ─── HTTP ───

@pytest_asyncio.fixture
async def http():
    async with AsyncClient(transport=ASGITransport(app=api.app), base_url=RELAY_URL) as client:
        yield client


@pytest.fixture
def relay_client(http):
    return DisclosureClient(RELAY_URL, client=http)


@pytest.fixture
def make_payload(relay_client):
    """Build a signed user-decrypt request body, optionally bent out of shape."""
    async def _make(account, handles, *, contract=GAME, scopes=None, start=None, days=10, keypair=None):
        keypair = keypair or generate_keypair()
        start = int(time.time()) if start is None else start
        envelope = build_envelope(keypair.public_key, scopes or [GAME], start, days)
        signer = LocalAccountSigner(account.key.hex())
        signature = await signer.sign_typed_data(envelope_typed_data(envelope))
        signed = SignedAuthorization(envelope, signature, account.address)
        payload = relay_client._build_payload(
            [HandlePair(h, contract) for h in handles],
            keypair, signed, envelope.authorized_scopes, account.address, start, days,
        )
        return payload, keypair
    return _make
