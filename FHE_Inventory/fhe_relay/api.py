"""
FastAPI development relay implementing the user-decrypt wire contract.

Checks, in order: request shape, envelope (scopes, duration), chain id,
validity window, EIP-712 signature against userAddress, then per pair the
scope, the handle's contract and the handle's ACL. Plaintexts come from
the Redis HandleStore and are sealed to the request's ephemeral public key.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, field_validator

from FHE_Inventory.fhe_relay import config
from FHE_Inventory.fhe_relay.store import HandleStore, create_store_client
from FHE_Inventory.fhe_shared import config as shared_config
from FHE_Inventory.fhe_shared.envelope import DEFAULT_DOMAIN, SigningDomain, build_envelope, recover_signer
from FHE_Inventory.fhe_shared.errors import (
    HandleNotFoundError,
    HandleStoreUnavailableError,
    InvalidDurationError,
    InvalidScopeError,
)
from FHE_Inventory.fhe_shared.key_engine import X25519_KEY_SIZE, seal_value, strip_hex_prefix
from FHE_Inventory.fhe_shared.log import get_logger

logger = get_logger(__name__)


# ── Pydantic request/response models ──


class HandleContractPair(BaseModel):
    handle: str
    contractAddress: str


class RequestValidity(BaseModel):
    startTimestamp: str
    durationDays: str

    @field_validator("startTimestamp", "durationDays")
    @classmethod
    def validate_decimal(cls, v):
        if not (v.isascii() and v.isdigit()):
            raise ValueError(f"Expected a decimal string, got {v!r}")
        return v


class UserDecryptRequest(BaseModel):
    handleContractPairs: list[HandleContractPair]
    publicKey: str
    signature: str
    contractAddresses: list[str]
    contractsChainId: str
    userAddress: str
    requestValidity: RequestValidity

    @field_validator("handleContractPairs")
    @classmethod
    def validate_pairs(cls, v):
        if not v:
            raise ValueError("handleContractPairs must not be empty")
        if len(v) > config.MAX_PAIRS_PER_REQUEST:
            raise ValueError(f"At most {config.MAX_PAIRS_PER_REQUEST} pairs per request")
        return v


class UserDecryptResponse(BaseModel):
    response: dict[str, str]


class HealthResponse(BaseModel):
    status: str
    store_connected: bool


# ── App lifecycle ──

store: Optional[HandleStore] = None
domain: SigningDomain = DEFAULT_DOMAIN


@asynccontextmanager
async def lifespan(app: FastAPI):
    global store
    if store is None:
        store = HandleStore(create_store_client())
    yield
    store.db.close()
    store = None


app = FastAPI(title="FHE Dev Relay", version="1.0.0", lifespan=lifespan)


def _get_store() -> HandleStore:
    if store is None:
        raise HTTPException(status_code=503, detail="Handle store not initialized")
    return store


def _check_public_key(public_key: str) -> None:
    try:
        raw = bytes.fromhex(strip_hex_prefix(public_key))
    except ValueError:
        raise HTTPException(status_code=400, detail="publicKey is not hex")
    if len(raw) != X25519_KEY_SIZE:
        raise HTTPException(status_code=400, detail=f"publicKey must be {X25519_KEY_SIZE} bytes")


# ── Endpoints ──


@app.post(shared_config.RELAY_DECRYPT_PATH, response_model=UserDecryptResponse)
async def user_decrypt(req: UserDecryptRequest):
    handles = _get_store()
    _check_public_key(req.publicKey)

    start = int(req.requestValidity.startTimestamp)
    days = int(req.requestValidity.durationDays)
    if days > config.MAX_DURATION_DAYS:
        raise HTTPException(status_code=400, detail=f"durationDays exceeds {config.MAX_DURATION_DAYS}")
    try:
        envelope = build_envelope(req.publicKey, req.contractAddresses, start, days)
    except (InvalidScopeError, InvalidDurationError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if req.contractsChainId != str(domain.contracts_chain_id):
        raise HTTPException(status_code=400, detail=f"Unsupported contractsChainId {req.contractsChainId}")

    now = int(time.time())
    if not envelope.is_valid_at(now) and not (0 < start - now <= config.CLOCK_SKEW_SECONDS):
        raise HTTPException(status_code=403, detail="Authorization is outside its validity window")

    try:
        signer = recover_signer(envelope, req.signature, domain)
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Invalid signature: {e}")
    if signer.lower() != req.userAddress.lower():
        raise HTTPException(status_code=401, detail="Signature does not match userAddress")

    results = {}
    try:
        for pair in req.handleContractPairs:
            if not envelope.covers(pair.contractAddress):
                raise HTTPException(status_code=403, detail=f"{pair.contractAddress} is not an authorized scope")
            entry = handles.require(pair.handle)
            if entry.contract_address.lower() != pair.contractAddress.lower():
                raise HTTPException(status_code=403, detail=f"{pair.handle} does not belong to {pair.contractAddress}")
            if entry.allowed_user.lower() != signer.lower():
                raise HTTPException(status_code=403, detail=f"{signer} may not decrypt {pair.handle}")
            results[pair.handle] = seal_value(req.publicKey, str(entry.plaintext))
    except HandleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except HandleStoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    logger.info("disclosed %d handle(s) to %s", len(results), signer)
    return UserDecryptResponse(response=results)


@app.get("/v1/health", response_model=HealthResponse)
async def health():
    connected = False
    if store is not None:
        try:
            connected = bool(store.db.ping())
        except Exception:
            connected = False
    return HealthResponse(
        status="ok" if connected else "degraded",
        store_connected=connected,
    )
