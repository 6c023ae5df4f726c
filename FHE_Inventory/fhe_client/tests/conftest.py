import asyncio
import json
from typing import Optional

import httpx
import pytest
from eth_account import Account

from FHE_Inventory.fhe_client.controller import ItemDisclosureController
from FHE_Inventory.fhe_client.coordinator import InventoryCoordinator
from FHE_Inventory.fhe_client.ledger import StaticHandleSource
from FHE_Inventory.fhe_client.relay_client import DisclosureClient
from FHE_Inventory.fhe_client.signer import LocalAccountSigner
from FHE_Inventory.fhe_shared.errors import LedgerUnavailableError, RelayRejectedError, UserRejectedError
from FHE_Inventory.fhe_shared.key_engine import seal_value

GAME = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
NOW = 1_700_000_000


# ─── Fakes ───

class RecordingSigner:
    """Wraps a real signer; counts prompts, can reject or hold them open."""

    def __init__(self, inner, reject: int = 0, gate: Optional[asyncio.Event] = None):
        self.inner = inner
        self.reject = reject
        self.gate = gate
        self.calls: list[dict] = []
        self.signatures: list[str] = []

    async def get_address(self) -> str:
        return await self.inner.get_address()

    async def sign_typed_data(self, typed_data: dict) -> str:
        self.calls.append(typed_data)
        if self.gate is not None:
            await self.gate.wait()
        if self.reject > 0:
            self.reject -= 1
            raise UserRejectedError()
        sig = await self.inner.sign_typed_data(typed_data)
        self.signatures.append(sig)
        return sig


class FakeRelay:
    """DisclosureClient stand-in returning canned plaintexts."""

    def __init__(self, values: dict[str, int], gate: Optional[asyncio.Event] = None, errors=None):
        self.values = dict(values)
        self.gate = gate
        self.errors = dict(errors or {})   # handle -> exception to raise
        self.calls: list[dict] = []
        self.entered = asyncio.Event()

    async def disclose(self, pairs, keypair, signed, scopes, requester, valid_from, duration_days):
        self.calls.append({
            "pairs": list(pairs),
            "keypair": keypair,
            "signed": signed,
            "scopes": list(scopes),
            "requester": requester,
            "valid_from": valid_from,
            "duration_days": duration_days,
        })
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        for p in pairs:
            if p.handle in self.errors:
                raise self.errors[p.handle]
        missing = [p.handle for p in pairs if p.handle not in self.values]
        if missing:
            raise RelayRejectedError("missing", missing=missing)
        return {p.handle: self.values[p.handle] for p in pairs}


class GatedSource(StaticHandleSource):
    """StaticHandleSource whose owner lookups can be held or failed."""

    def __init__(self, tokens, gate: Optional[asyncio.Event] = None):
        super().__init__(tokens)
        self.gate = gate
        self.fail = False

    async def owned_item_ids(self, owner: str) -> list[int]:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise LedgerUnavailableError("node down")
        return await super().owned_item_ids(owner)


# ─── Fixtures ───

@pytest.fixture
def owner_account():
    return Account.create()


@pytest.fixture
def other_account():
    return Account.create()


@pytest.fixture
def local_signer(owner_account):
    return LocalAccountSigner(owner_account.key.hex())


@pytest.fixture
def make_signer(local_signer):
    def _make(**kwargs) -> RecordingSigner:
        return RecordingSigner(local_signer, **kwargs)
    return _make


@pytest.fixture
def make_relay():
    def _make(values=None, **kwargs) -> FakeRelay:
        if values is None:
            values = {"0xaa": 42, "0xbb": 37, "0xcc": 5, "0xdd": 6}
        return FakeRelay(values, **kwargs)
    return _make


@pytest.fixture
def tokens(owner_account, other_account):
    return {
        owner_account.address: {
            1: (0, "0xaa", "0xbb"),
            2: (2, "0xcc", "0xdd"),
        },
        other_account.address: {
            7: (1, "0xee", "0xff"),
        },
    }


@pytest.fixture
def source(tokens):
    return GatedSource(tokens)


@pytest.fixture
def make_controller():
    def _make(signer, relay, **kwargs) -> ItemDisclosureController:
        kwargs.setdefault("scope", GAME)
        kwargs.setdefault("clock", lambda: NOW)
        return ItemDisclosureController(signer, relay, **kwargs)
    return _make


@pytest.fixture
def make_coordinator(source, make_controller):
    def _make(signer, relay, **kwargs) -> InventoryCoordinator:
        return InventoryCoordinator(source, make_controller(signer, relay, **kwargs))
    return _make


def sealing_handler(plaintexts: dict[str, str], seen: Optional[list] = None):
    """MockTransport handler acting as a relay: seals plaintexts it knows, omits the rest."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if seen is not None:
            seen.append(body)
        pk = body["publicKey"]
        response = {
            pair["handle"]: seal_value(pk, plaintexts[pair["handle"]])
            for pair in body["handleContractPairs"]
            if pair["handle"] in plaintexts
        }
        return httpx.Response(200, json={"response": response})
    return handler


@pytest.fixture
def make_relay_client():
    def _make(handler, timeout: float = 5.0) -> DisclosureClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return DisclosureClient("http://relay.test", timeout=timeout, client=client)
    return _make


@pytest.fixture
def sealing_relay():
    return sealing_handler
