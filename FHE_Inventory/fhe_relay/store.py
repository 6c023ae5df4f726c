"""
Handle store for the development relay.

Stands in for the decryption network: each ciphertext handle maps to the
contract it belongs to, the address allowed to decrypt it, and its
plaintext. Entries live in Redis hashes under relay:v1:handle:{handle}.
"""

import os
import time
from dataclasses import dataclass
from typing import Optional

import redis

from FHE_Inventory.fhe_relay import config
from FHE_Inventory.fhe_shared.errors import HandleNotFoundError, HandleStoreUnavailableError


@dataclass
class HandleEntry:
    handle:           str
    contract_address: str
    allowed_user:     str
    plaintext:        int
    created_at:       int


def create_store_client() -> redis.Redis:
    r = redis.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=config.REDIS_HANDLE_DB,
        decode_responses=False,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
    )
    try:
        r.ping()
    except redis.exceptions.ConnectionError:
        raise HandleStoreUnavailableError(f"Cannot connect to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
    return r


class HandleStore:
    def __init__(self, client: redis.Redis):
        self.db: redis.Redis = client

    def _handle_key(self, handle: str) -> str:
        return f"{config.HANDLE_KEY_PREFIX}:{handle.lower()}"

    def _deserialize_entry(self, handle: str, data: dict[bytes, bytes]) -> HandleEntry:
        return HandleEntry(
            handle=handle,
            contract_address=data[b"contract_address"].decode(),
            allowed_user=data[b"allowed_user"].decode(),
            plaintext=int(data[b"plaintext"]),
            created_at=int(data[b"created_at"]),
        )

    def put(self, handle: str, contract_address: str, allowed_user: str, plaintext: int) -> None:
        full_key = self._handle_key(handle)
        try:
            pipe = self.db.pipeline(transaction=True)
            pipe.hset(full_key, mapping={
                "contract_address": contract_address,
                "allowed_user": allowed_user,
                # decimal string keeps full uint256 precision
                "plaintext": str(int(plaintext)),
                "created_at": str(int(time.time() * 1000)),
            })
            pipe.expire(full_key, config.HANDLE_TTL_SECONDS)
            pipe.execute()
        except redis.exceptions.ConnectionError:
            raise HandleStoreUnavailableError("put")

    def get(self, handle: str) -> Optional[HandleEntry]:
        try:
            data = self.db.hgetall(self._handle_key(handle))
        except redis.exceptions.ConnectionError:
            raise HandleStoreUnavailableError("get")
        if not data:
            return None
        return self._deserialize_entry(handle, data)

    def require(self, handle: str) -> HandleEntry:
        entry = self.get(handle)
        if entry is None:
            raise HandleNotFoundError(handle)
        return entry

    def allow(self, handle: str, user: str) -> None:
        """Move decrypt permission for a handle to another user (token transfer)."""
        full_key = self._handle_key(handle)
        try:
            if not self.db.exists(full_key):
                raise HandleNotFoundError(handle)
            self.db.hset(full_key, "allowed_user", user)
        except redis.exceptions.ConnectionError:
            raise HandleStoreUnavailableError("allow")


def mint_handle(
    store: HandleStore,
    contract_address: str,
    owner: str,
    plaintext: int,
) -> str:
    """Register a new random bytes32 handle for `plaintext` and return it."""
    handle = "0x" + os.urandom(32).hex()
    store.put(handle, contract_address, owner, plaintext)
    return handle
