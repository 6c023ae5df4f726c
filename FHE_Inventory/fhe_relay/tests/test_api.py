"""
Relay API tests over httpx ASGITransport with a fakeredis HandleStore.

The end-to-end cases drive the real client stack (coordinator, controller,
DisclosureClient, LocalAccountSigner) against the in-process relay.
"""

import time

import pytest

from FHE_Inventory.fhe_client.controller import ItemDisclosureController
from FHE_Inventory.fhe_client.coordinator import InventoryCoordinator
from FHE_Inventory.fhe_client.ledger import StaticHandleSource
from FHE_Inventory.fhe_client.signer import LocalAccountSigner
from FHE_Inventory.fhe_relay import api, config
from FHE_Inventory.fhe_relay.store import mint_handle
from FHE_Inventory.fhe_shared.errors import RelayRejectedError, RelayUnavailableError
from FHE_Inventory.fhe_shared.envelope import build_envelope, envelope_typed_data
from FHE_Inventory.fhe_shared.key_engine import generate_keypair, open_value
from FHE_Inventory.fhe_shared.types import DisclosureStatus, FailureReason, HandlePair, SignedAuthorization

pytestmark = pytest.mark.asyncio

GAME = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
OTHER = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
PATH = "/v1/user-decrypt"
DAY = 86_400


@pytest.fixture
def minted(store, owner_account):
    """Two items for the owner: token 1 (42/37) and token 2 (5/6)."""
    mint = lambda value: mint_handle(store, GAME, owner_account.address, value)
    return {
        1: (0, mint(42), mint(37)),
        2: (2, mint(5), mint(6)),
    }


def _inventory(owner_account, minted, signer, relay_client) -> InventoryCoordinator:
    source = StaticHandleSource({owner_account.address: minted})
    controller = ItemDisclosureController(signer, relay_client, scope=GAME)
    return InventoryCoordinator(source, controller)


# ─── End to end ───

async def test_reveal_through_relay(owner_account, owner_signer, minted, relay_client):
    inv = _inventory(owner_account, minted, owner_signer, relay_client)
    await inv.load(owner_account.address)

    state = await inv.reveal(1)

    assert state.status is DisclosureStatus.REVEALED
    item = inv.items()[0]
    assert (item.attack, item.defense) == (42, 37)
    assert inv.items()[1].revealed is False


async def test_reveal_all_through_relay(owner_account, owner_signer, minted, relay_client):
    inv = _inventory(owner_account, minted, owner_signer, relay_client)
    await inv.load(owner_account.address)

    states = await inv.reveal_all()

    assert all(s.status is DisclosureStatus.REVEALED for s in states.values())
    assert [(i.attack, i.defense) for i in inv.items()] == [(42, 37), (5, 6)]


async def test_stranger_cannot_decrypt(owner_account, stranger_account, minted, relay_client):
    signer = LocalAccountSigner(stranger_account.key.hex())
    inv = _inventory(owner_account, minted, signer, relay_client)
    await inv.load(owner_account.address)

    state = await inv.reveal(1)

    assert state.status is DisclosureStatus.FAILED
    assert state.reason is FailureReason.ERROR
    assert inv.items()[0].revealed is False


async def _authorize(signer, address):
    keypair = generate_keypair()
    start = int(time.time())
    envelope = build_envelope(keypair.public_key, [GAME], start, 10)
    signature = await signer.sign_typed_data(envelope_typed_data(envelope))
    return keypair, SignedAuthorization(envelope, signature, address), start


async def test_client_sees_missing_handle(owner_account, owner_signer, relay_client):
    keypair, signed, start = await _authorize(owner_signer, owner_account.address)

    with pytest.raises(RelayRejectedError):
        await relay_client.disclose(
            [HandlePair("0x" + "ab" * 32, GAME)],
            keypair, signed, signed.envelope.authorized_scopes,
            owner_account.address, start, 10,
        )


async def test_client_sees_store_outage(owner_account, owner_signer, minted, relay_client):
    keypair, signed, start = await _authorize(owner_signer, owner_account.address)
    api.store = None

    with pytest.raises(RelayUnavailableError):
        await relay_client.disclose(
            [HandlePair(minted[1][1], GAME)],
            keypair, signed, signed.envelope.authorized_scopes,
            owner_account.address, start, 10,
        )


async def test_store_down_is_unavailable(owner_account, owner_signer, minted, relay_client):
    inv = _inventory(owner_account, minted, owner_signer, relay_client)
    await inv.load(owner_account.address)
    api.store = None

    state = await inv.reveal(1)

    assert state.status is DisclosureStatus.FAILED
    assert state.reason is FailureReason.UNAVAILABLE


# ─── Wire-level checks ───

async def test_sealed_values_open_to_plaintext(http, owner_account, minted, make_payload):
    _, attack, defense = minted[1]
    payload, keypair = await make_payload(owner_account, [attack, defense])

    resp = await http.post(PATH, json=payload)

    assert resp.status_code == 200
    body = resp.json()["response"]
    assert open_value(keypair, body[attack]) == "42"
    assert open_value(keypair, body[defense]) == "37"


async def test_wrong_user_address(http, owner_account, stranger_account, minted, make_payload):
    payload, _ = await make_payload(owner_account, [minted[1][1]])
    payload["userAddress"] = stranger_account.address

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 401


async def test_garbage_signature(http, owner_account, minted, make_payload):
    payload, _ = await make_payload(owner_account, [minted[1][1]])
    payload["signature"] = "00" * 65

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 401


async def test_tampered_duration(http, owner_account, minted, make_payload):
    payload, _ = await make_payload(owner_account, [minted[1][1]])
    payload["requestValidity"]["durationDays"] = "30"

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 401


async def test_expired_authorization(http, owner_account, minted, make_payload):
    start = int(time.time()) - 11 * DAY
    payload, _ = await make_payload(owner_account, [minted[1][1]], start=start, days=10)

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 403


async def test_not_yet_valid(http, owner_account, minted, make_payload):
    start = int(time.time()) + config.CLOCK_SKEW_SECONDS + 3600
    payload, _ = await make_payload(owner_account, [minted[1][1]], start=start)

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 403


async def test_duration_over_limit(http, owner_account, minted, make_payload):
    payload, _ = await make_payload(owner_account, [minted[1][1]], days=config.MAX_DURATION_DAYS + 1)

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 400


async def test_wrong_chain(http, owner_account, minted, make_payload):
    payload, _ = await make_payload(owner_account, [minted[1][1]])
    payload["contractsChainId"] = "1"

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 400


async def test_bad_public_key(http, owner_account, minted, make_payload):
    payload, _ = await make_payload(owner_account, [minted[1][1]])
    payload["publicKey"] = "abcd"

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 400


async def test_pair_outside_scope(http, store, owner_account, make_payload):
    handle = mint_handle(store, OTHER, owner_account.address, 9)
    payload, _ = await make_payload(owner_account, [handle], contract=OTHER, scopes=[GAME])

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 403


async def test_handle_from_another_contract(http, store, owner_account, make_payload):
    handle = mint_handle(store, OTHER, owner_account.address, 9)
    payload, _ = await make_payload(owner_account, [handle], contract=GAME)

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 403


async def test_acl_after_transfer(http, store, owner_account, stranger_account, minted, make_payload):
    _, attack, _ = minted[1]
    store.allow(attack, stranger_account.address)
    payload, _ = await make_payload(owner_account, [attack])

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 403


async def test_unknown_handle(http, owner_account, make_payload):
    payload, _ = await make_payload(owner_account, ["0x" + "ab" * 32])

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 404


async def test_empty_pairs(http, owner_account, make_payload):
    payload, _ = await make_payload(owner_account, [])

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 422


@pytest.mark.parametrize("field,value", [
    ("startTimestamp", "-5"),
    ("startTimestamp", "１７"),
    ("durationDays", "²"),
    ("durationDays", ""),
])
async def test_non_decimal_validity(http, owner_account, minted, make_payload, field, value):
    payload, _ = await make_payload(owner_account, [minted[1][1]])
    payload["requestValidity"][field] = value

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 422


async def test_too_many_pairs(http, owner_account, make_payload):
    handles = ["0x%064x" % i for i in range(config.MAX_PAIRS_PER_REQUEST + 1)]
    payload, _ = await make_payload(owner_account, handles)

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 422


async def test_store_not_initialized(http, owner_account, minted, make_payload):
    payload, _ = await make_payload(owner_account, [minted[1][1]])
    api.store = None

    resp = await http.post(PATH, json=payload)
    assert resp.status_code == 503


# ─── Health ───

async def test_health(http):
    resp = await http.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "store_connected": True}


async def test_health_without_store(http):
    api.store = None
    resp = await http.get("/v1/health")
    assert resp.json() == {"status": "degraded", "store_connected": False}
