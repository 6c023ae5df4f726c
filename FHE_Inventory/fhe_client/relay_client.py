"""
DisclosureClient: one round trip to the decryption relay.

Request (POST {relay_url}/v1/user-decrypt):
    handleContractPairs  [{handle, contractAddress}]
    publicKey            ephemeral public key, hex without 0x
    signature            owner signature, hex without 0x
    contractAddresses    authorized scopes
    contractsChainId     chain of the scoped contracts
    userAddress          requester
    requestValidity      {startTimestamp: "<unix s>", durationDays: "<n>"}

Response:
    {"response": {handle: sealed_hex}}

Each sealed value is the decimal plaintext sealed to the ephemeral public
key. The relay is trusted to decrypt but not to be complete: a batch is only
accepted when every requested handle comes back and opens to an integer.
"""

import asyncio
from typing import Optional, Sequence

import httpx

from FHE_Inventory.fhe_shared import config
from FHE_Inventory.fhe_shared.errors import (
    InvalidScopeError,
    RelayRejectedError,
    RelayTimeoutError,
    RelayUnavailableError,
)
from FHE_Inventory.fhe_shared.key_engine import open_value, strip_hex_prefix
from FHE_Inventory.fhe_shared.log import get_logger
from FHE_Inventory.fhe_shared.types import EphemeralKeyPair, HandlePair, SignedAuthorization

logger = get_logger(__name__)


class DisclosureClient:
    def __init__(
        self,
        relay_url: str = config.RELAY_URL,
        *,
        timeout: float = config.RELAY_TIMEOUT_SECONDS,
        contracts_chain_id: int = config.CHAIN_ID,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.relay_url = relay_url.rstrip("/")
        self.timeout = timeout
        self.contracts_chain_id = contracts_chain_id
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def __aenter__(self) -> "DisclosureClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _build_payload(
        self,
        pairs: Sequence[HandlePair],
        keypair: EphemeralKeyPair,
        signed: SignedAuthorization,
        scopes: Sequence[str],
        requester: str,
        valid_from: int,
        duration_days: int,
    ) -> dict:
        return {
            "handleContractPairs": [
                {"handle": p.handle, "contractAddress": p.contract_address} for p in pairs
            ],
            "publicKey": strip_hex_prefix(keypair.public_key),
            "signature": strip_hex_prefix(signed.signature),
            "contractAddresses": list(scopes),
            "contractsChainId": str(self.contracts_chain_id),
            "userAddress": requester,
            "requestValidity": {
                "startTimestamp": str(valid_from),
                "durationDays": str(duration_days),
            },
        }

    async def _post(self, payload: dict) -> httpx.Response:
        url = f"{self.relay_url}{config.RELAY_DECRYPT_PATH}"
        try:
            return await asyncio.wait_for(
                self._client.post(url, json=payload, timeout=self.timeout),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise RelayTimeoutError(self.timeout)
        except httpx.HTTPError as e:
            raise RelayUnavailableError(f"{type(e).__name__}: {e}")

    async def disclose(
        self,
        pairs: Sequence[HandlePair],
        keypair: EphemeralKeyPair,
        signed: SignedAuthorization,
        scopes: Sequence[str],
        requester: str,
        valid_from: int,
        duration_days: int,
    ) -> dict[str, int]:
        """Disclose every handle in `pairs` under one signed authorization.

        Returns {handle: plaintext}. All or nothing: a missing or unreadable
        entry fails the whole batch with RelayRejectedError.
        """
        if not pairs:
            return {}
        for p in pairs:
            if not signed.envelope.covers(p.contract_address):
                raise InvalidScopeError(p.contract_address)

        payload = self._build_payload(
            pairs, keypair, signed, scopes, requester, valid_from, duration_days,
        )
        resp = await self._post(payload)

        if resp.status_code >= 500:
            raise RelayUnavailableError(f"relay returned HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise RelayRejectedError(f"relay rejected request: HTTP {resp.status_code} {_detail(resp)}")

        try:
            results = resp.json()["response"]
        except (ValueError, KeyError, TypeError):
            raise RelayRejectedError("relay response is malformed")
        if not isinstance(results, dict):
            raise RelayRejectedError("relay response is malformed")

        missing = [p.handle for p in pairs if p.handle not in results]
        if missing:
            logger.warning("relay omitted %d of %d handles", len(missing), len(pairs))
            raise RelayRejectedError(f"relay response missing {len(missing)} handle(s)", missing=missing)

        values = {}
        for p in pairs:
            try:
                values[p.handle] = int(open_value(keypair, results[p.handle]))
            except (ValueError, TypeError) as e:
                raise RelayRejectedError(f"unreadable value for {p.handle}: {e}")
        return values


def _detail(resp: httpx.Response) -> str:
    try:
        return str(resp.json().get("detail", ""))
    except (ValueError, AttributeError):
        return resp.text[:200]
