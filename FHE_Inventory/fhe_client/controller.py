"""
ItemDisclosureController: per-item reveal state machine.

    LOCKED ──reveal──▶ DISCLOSING ──ok──▶ REVEALED   (terminal)
                           │
                           └──error──▶ FAILED ──reveal──▶ DISCLOSING

One reveal session:
    keypair → envelope → owner signature → one batched relay call
    → commit both stats (unless the session token was cancelled)

The controller only touches the ItemRecord it is handed. Session material
(key pair, signature) is local to a single call.
"""

import time
from dataclasses import dataclass
from typing import Callable

from FHE_Inventory.fhe_shared import config
from FHE_Inventory.fhe_shared.envelope import DEFAULT_DOMAIN, SigningDomain, build_envelope, envelope_typed_data
from FHE_Inventory.fhe_shared.errors import (
    CapabilityUnavailableError,
    DisclosureError,
    RelayUnavailableError,
    SignerUnavailableError,
    StaleContextError,
    UserRejectedError,
)
from FHE_Inventory.fhe_shared.key_engine import generate_keypair
from FHE_Inventory.fhe_shared.log import get_logger
from FHE_Inventory.fhe_shared.types import (
    DisclosureState,
    DisclosureStatus,
    FailureReason,
    HandlePair,
    ItemRecord,
    SessionToken,
    SignedAuthorization,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class RevealContext:
    """Everything one session needs about its item, captured before the first await."""
    token_id:       int
    scope:          str
    attack_handle:  str
    defense_handle: str

    @property
    def pairs(self) -> list[HandlePair]:
        return [
            HandlePair(self.attack_handle, self.scope),
            HandlePair(self.defense_handle, self.scope),
        ]


class ItemDisclosureController:
    def __init__(
        self,
        signer=None,
        relay=None,
        *,
        scope: str = config.GAME_CONTRACT_ADDRESS,
        duration_days: int = config.DISCLOSURE_VALIDITY_DAYS,
        domain: SigningDomain = DEFAULT_DOMAIN,
        clock: Callable[[], float] = time.time,
    ):
        self.signer = signer
        self.relay = relay
        self.scope = scope
        self.duration_days = duration_days
        self.domain = domain
        self._clock = clock

    def _check_capabilities(self) -> None:
        if self.relay is None:
            raise CapabilityUnavailableError("relay client")
        if self.signer is None:
            raise CapabilityUnavailableError("signer")

    async def reveal(self, record: ItemRecord, token: SessionToken) -> DisclosureState:
        """Run one reveal session for `record` and return its resulting state."""
        status = record.state.status
        if status in (DisclosureStatus.DISCLOSING, DisclosureStatus.REVEALED):
            return record.state

        try:
            self._check_capabilities()
        except CapabilityUnavailableError as e:
            message = config.MSG_RELAY_UNAVAILABLE if e.capability == "relay client" else config.MSG_SIGNER_UNAVAILABLE
            record.state = DisclosureState(status, FailureReason.UNAVAILABLE, message)
            logger.warning("token %s: %s", record.item.token_id, e)
            return record.state

        # No await between the guard above and this transition.
        record.state = DisclosureState(DisclosureStatus.DISCLOSING)
        ctx = RevealContext(
            token_id=record.item.token_id,
            scope=self.scope,
            attack_handle=record.item.attack_handle,
            defense_handle=record.item.defense_handle,
        )
        logger.info("token %s: disclosing", ctx.token_id)

        try:
            values = await self._run_session(ctx, token)
        except StaleContextError as e:
            logger.warning("%s; discarding", e)
            return record.state
        except DisclosureError as e:
            if token.cancelled:
                logger.warning("%s; discarding", StaleContextError(ctx.token_id))
                return record.state
            reason, message = _classify(e)
            logger.warning("token %s: %s", ctx.token_id, e)
            return self._fail(record, reason, message)
        except BaseException:
            if not token.cancelled:
                self._fail(record, FailureReason.ERROR, config.MSG_DECRYPT_FAILED)
            raise

        if token.cancelled:
            logger.warning("%s; discarding", StaleContextError(ctx.token_id))
            return record.state

        record.item.reveal(values[ctx.attack_handle], values[ctx.defense_handle])
        record.state = DisclosureState(DisclosureStatus.REVEALED)
        logger.info("token %s: revealed", ctx.token_id)
        return record.state

    async def _run_session(self, ctx: RevealContext, token: SessionToken) -> dict[str, int]:
        keypair = generate_keypair()
        valid_from = int(self._clock())
        envelope = build_envelope(keypair.public_key, [ctx.scope], valid_from, self.duration_days)

        signature = await self.signer.sign_typed_data(envelope_typed_data(envelope, self.domain))
        signer_address = await self.signer.get_address()
        if token.cancelled:
            raise StaleContextError(ctx.token_id)

        signed = SignedAuthorization(envelope, signature, signer_address)
        return await self.relay.disclose(
            ctx.pairs,
            keypair,
            signed,
            envelope.authorized_scopes,
            signer_address,
            valid_from,
            self.duration_days,
        )

    def _fail(self, record: ItemRecord, reason: FailureReason, message: str) -> DisclosureState:
        record.state = DisclosureState(DisclosureStatus.FAILED, reason, message)
        logger.info("token %s: failed (%s)", record.item.token_id, reason.value)
        return record.state


def _classify(error: DisclosureError) -> tuple[FailureReason, str]:
    """Map a session error to the reason and message shown for the item."""
    if isinstance(error, UserRejectedError):
        return FailureReason.CANCELLED, config.MSG_CANCELLED
    if isinstance(error, SignerUnavailableError):
        return FailureReason.UNAVAILABLE, config.MSG_SIGNER_UNAVAILABLE
    if isinstance(error, RelayUnavailableError):
        return FailureReason.UNAVAILABLE, config.MSG_RELAY_UNAVAILABLE
    return FailureReason.ERROR, str(error) or config.MSG_DECRYPT_FAILED
