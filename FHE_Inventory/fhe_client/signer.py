"""
Owner signers for the authorization envelope.

A signer exposes two coroutines:

    sign_typed_data(typed_data) -> "0x..." signature
    get_address()               -> checksummed owner address

and fails with UserRejectedError or SignerUnavailableError. Signing may wait
on a human, so callers must not hold anything other items need while
awaiting it.
"""

import asyncio
import os
from typing import Awaitable, Callable, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from FHE_Inventory.fhe_shared.errors import SignerUnavailableError, UserRejectedError
from FHE_Inventory.fhe_shared.log import get_logger

logger = get_logger(__name__)

PRIVATE_KEY_ENV = "FHE_PRIVATE_KEY"


class LocalAccountSigner:
    """Signs with a locally held secp256k1 key."""

    def __init__(self, private_key: str):
        try:
            self._account: LocalAccount = Account.from_key(private_key)
        except Exception as e:
            raise SignerUnavailableError(f"invalid private key: {e}")

    @classmethod
    def from_env(cls, var: str = PRIVATE_KEY_ENV) -> "LocalAccountSigner":
        key = os.environ.get(var)
        if not key:
            raise SignerUnavailableError(f"{var} is not set")
        return cls(key)

    async def get_address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, typed_data: dict) -> str:
        try:
            signed = self._account.sign_typed_data(full_message=typed_data)
        except Exception as e:
            raise SignerUnavailableError(f"cannot sign typed data: {e}")
        return "0x" + bytes(signed.signature).hex()


async def _ask(question: str) -> str:
    return await asyncio.to_thread(input, question)


class ConfirmingSigner:
    """Asks the user before every signature. Anything but 'y' is a rejection."""

    def __init__(
        self,
        inner,
        prompt: Optional[Callable[[str], Awaitable[str]]] = None,
    ):
        self._inner = inner
        self._prompt = prompt or _ask
        # One question on stdin at a time; signing and relay calls stay concurrent.
        self._prompt_lock = asyncio.Lock()

    async def get_address(self) -> str:
        return await self._inner.get_address()

    async def sign_typed_data(self, typed_data: dict) -> str:
        message = typed_data.get("message", {})
        question = (
            f"Sign decryption request for {', '.join(message.get('contractAddresses', []))} "
            f"valid {message.get('durationDays')} days? [y/N] "
        )
        async with self._prompt_lock:
            try:
                answer = await self._prompt(question)
            except EOFError:
                answer = ""
        if answer.strip().lower() not in ("y", "yes"):
            logger.info("signature request declined")
            raise UserRejectedError()
        return await self._inner.sign_typed_data(typed_data)
