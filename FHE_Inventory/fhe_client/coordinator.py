"""
InventoryCoordinator: owner of the loaded items and their disclosure states.

Load:    HandleSource.owned_item_ids(owner) → per token (concurrently):
         classification, attack handle, defense handle → ItemRecord(LOCKED)
Reveal:  ItemDisclosureController.reveal(record, session token)
Reset:   new owner or disconnect → cancel the session token, drop all records

Every in-flight reveal carries the token of the load that created its
record; results that come back after the token is cancelled are dropped.
"""

import asyncio
from typing import Optional

from FHE_Inventory.fhe_client.controller import ItemDisclosureController
from FHE_Inventory.fhe_shared.errors import LedgerUnavailableError, LoadFailedError, UnknownItemError
from FHE_Inventory.fhe_shared.log import get_logger
from FHE_Inventory.fhe_shared.types import (
    DisclosureState,
    DisclosureStatus,
    Item,
    ItemRecord,
    SessionToken,
    parse_rarity,
)

logger = get_logger(__name__)


class InventoryCoordinator:
    def __init__(self, source, controller=None):
        self.source = source
        self.controller = controller if controller is not None else ItemDisclosureController()
        self._records: dict[int, ItemRecord] = {}
        self._token: Optional[SessionToken] = None
        self.load_error: Optional[str] = None
        self.loading = False

    @property
    def owner(self) -> Optional[str]:
        return self._token.owner if self._token is not None else None

    def _reset(self, owner: Optional[str]) -> SessionToken:
        if self._token is not None:
            self._token.cancel()
        self._records = {}
        self.load_error = None
        self._token = SessionToken(owner) if owner is not None else None
        return self._token

    async def _load_item(self, token_id: int) -> Item:
        rarity, attack_handle, defense_handle = await asyncio.gather(
            self.source.classification_of(token_id),
            self.source.attack_handle_of(token_id),
            self.source.defense_handle_of(token_id),
        )
        return Item(
            token_id=int(token_id),
            rarity=parse_rarity(rarity),
            attack_handle=attack_handle,
            defense_handle=defense_handle,
        )

    async def load(self, owner: str) -> list[Item]:
        """Load the owner's items. Switching owners drops everything first."""
        if self.owner is None or self.owner.lower() != owner.lower():
            logger.info("switching inventory to %s", owner)
            self._reset(owner)
        pending = self._token

        self.loading = True
        try:
            ids = await self.source.owned_item_ids(owner)
            items = await asyncio.gather(*(self._load_item(tid) for tid in ids))
        except LedgerUnavailableError as e:
            if pending is self._token:
                self.load_error = str(LoadFailedError(owner, e))
                logger.warning(self.load_error)
            raise LoadFailedError(owner, e)
        finally:
            if pending is self._token:
                self.loading = False

        if pending.cancelled or pending is not self._token:
            logger.warning("load for %s finished after the inventory moved on; discarding", owner)
            return self.items()

        # A fresh load re-creates every record under a new session.
        fresh = SessionToken(owner)
        pending.cancel()
        self._token = fresh
        self._records = {item.token_id: ItemRecord(item) for item in items}
        self.load_error = None
        logger.info("loaded %d items for %s", len(self._records), owner)
        return self.items()

    def disconnect(self) -> None:
        logger.info("disconnecting %s", self.owner)
        self._reset(None)
        self.loading = False

    def items(self) -> list[Item]:
        return [record.item for record in self._records.values()]

    def records(self) -> list[ItemRecord]:
        return list(self._records.values())

    def state_of(self, token_id: int) -> DisclosureState:
        return self._record(token_id).state

    def _record(self, token_id: int) -> ItemRecord:
        try:
            return self._records[token_id]
        except KeyError:
            raise UnknownItemError(token_id)

    async def reveal(self, token_id: int) -> DisclosureState:
        record = self._record(token_id)
        return await self.controller.reveal(record, self._token)

    async def reveal_all(self) -> dict[int, DisclosureState]:
        """Reveal every item that is not yet revealed, one signature per item."""
        todo = [
            r for r in self._records.values()
            if r.state.status not in (DisclosureStatus.REVEALED, DisclosureStatus.DISCLOSING)
        ]
        token = self._token
        results = await asyncio.gather(
            *(self.controller.reveal(record, token) for record in todo),
            return_exceptions=True,
        )

        states = {}
        for record, result in zip(todo, results):
            if isinstance(result, BaseException):
                # The controller has already marked the record FAILED.
                logger.error("token %s: reveal crashed: %r", record.item.token_id, result)
                states[record.item.token_id] = record.state
            else:
                states[record.item.token_id] = result
        return states
