"""
Read-only ledger access to the game contract.

    tokensOfOwner(address) -> uint256[]
    rarityOf(uint256)      -> uint8     (public)
    attackOf(uint256)      -> bytes32   (ciphertext handle)
    defenseOf(uint256)     -> bytes32   (ciphertext handle)

Calls go out as JSON-RPC eth_call over httpx. Any transport or RPC failure
is raised as LedgerUnavailableError.
"""

import itertools
from typing import Optional

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from FHE_Inventory.fhe_shared import config
from FHE_Inventory.fhe_shared.errors import LedgerUnavailableError
from FHE_Inventory.fhe_shared.log import get_logger

logger = get_logger(__name__)


def _selector(signature: str) -> bytes:
    return function_signature_to_4byte_selector(signature)


TOKENS_OF_OWNER = _selector("tokensOfOwner(address)")
RARITY_OF = _selector("rarityOf(uint256)")
ATTACK_OF = _selector("attackOf(uint256)")
DEFENSE_OF = _selector("defenseOf(uint256)")


def encode_call(selector: bytes, arg_types: list[str], args: list) -> str:
    return "0x" + (selector + encode(arg_types, args)).hex()


def decode_result(result_types: list[str], data: str):
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    try:
        return decode(result_types, raw)
    except DecodingError as e:
        raise LedgerUnavailableError(f"cannot decode {result_types}: {e}")


class LedgerHandleSource:
    """HandleSource backed by a JSON-RPC node."""

    def __init__(
        self,
        contract_address: str = config.GAME_CONTRACT_ADDRESS,
        rpc_url: str = config.RPC_URL,
        *,
        timeout: float = config.LEDGER_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.contract_address = to_checksum_address(contract_address)
        self.rpc_url = rpc_url
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def _eth_call(self, data: str) -> str:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [{"to": self.contract_address, "data": data}, "latest"],
        }
        try:
            resp = await self._client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as e:
            raise LedgerUnavailableError(f"eth_call failed: {e}")
        except ValueError as e:
            raise LedgerUnavailableError(f"eth_call returned invalid JSON: {e}")

        if "error" in body:
            raise LedgerUnavailableError(f"eth_call rpc error: {body['error']}")
        result = body.get("result")
        if not isinstance(result, str):
            raise LedgerUnavailableError("eth_call returned no result")
        return result

    async def owned_item_ids(self, owner: str) -> list[int]:
        data = encode_call(TOKENS_OF_OWNER, ["address"], [to_checksum_address(owner)])
        (ids,) = decode_result(["uint256[]"], await self._eth_call(data))
        logger.debug("owner %s holds %d tokens", owner, len(ids))
        return list(ids)

    async def classification_of(self, token_id: int) -> int:
        data = encode_call(RARITY_OF, ["uint256"], [token_id])
        (rarity,) = decode_result(["uint8"], await self._eth_call(data))
        return rarity

    async def attack_handle_of(self, token_id: int) -> str:
        data = encode_call(ATTACK_OF, ["uint256"], [token_id])
        (handle,) = decode_result(["bytes32"], await self._eth_call(data))
        return "0x" + handle.hex()

    async def defense_handle_of(self, token_id: int) -> str:
        data = encode_call(DEFENSE_OF, ["uint256"], [token_id])
        (handle,) = decode_result(["bytes32"], await self._eth_call(data))
        return "0x" + handle.hex()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class StaticHandleSource:
    """In-memory HandleSource for offline fixtures.

    tokens maps owner address -> {token_id: (rarity, attack_handle, defense_handle)}.
    """

    def __init__(self, tokens: dict[str, dict[int, tuple[int, str, str]]]):
        self._tokens = {owner.lower(): dict(entries) for owner, entries in tokens.items()}
        self._by_id = {}
        for entries in self._tokens.values():
            self._by_id.update(entries)

    async def owned_item_ids(self, owner: str) -> list[int]:
        return list(self._tokens.get(owner.lower(), {}))

    async def classification_of(self, token_id: int) -> int:
        return self._lookup(token_id)[0]

    async def attack_handle_of(self, token_id: int) -> str:
        return self._lookup(token_id)[1]

    async def defense_handle_of(self, token_id: int) -> str:
        return self._lookup(token_id)[2]

    def _lookup(self, token_id: int) -> tuple[int, str, str]:
        try:
            return self._by_id[token_id]
        except KeyError:
            raise LedgerUnavailableError(f"token {token_id} does not exist")

    async def close(self) -> None:
        return None
