from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Union

from FHE_Inventory.fhe_shared.config import SECONDS_PER_DAY


class Rarity(IntEnum):
    COMMON = 0
    RARE = 1
    LEGENDARY = 2


def parse_rarity(raw: int) -> Union[Rarity, int]:
    """Map a raw on-chain rarity to Rarity, keeping unknown values as ints."""
    try:
        return Rarity(raw)
    except ValueError:
        return int(raw)


@dataclass
class Item:
    token_id:       int
    rarity:         Union[Rarity, int]
    attack_handle:  str
    defense_handle: str
    attack:         Optional[int] = None
    defense:        Optional[int] = None

    @property
    def revealed(self) -> bool:
        return self.attack is not None and self.defense is not None

    def reveal(self, attack: int, defense: int) -> None:
        """Set both plaintext stats at once. Stats never change after the first reveal."""
        if self.revealed:
            return
        self.attack = int(attack)
        self.defense = int(defense)


@dataclass(frozen=True)
class EphemeralKeyPair:
    public_key:  str    # hex, no 0x prefix
    private_key: str


@dataclass(frozen=True)
class AuthorizationEnvelope:
    public_key:          str
    authorized_scopes:   tuple[str, ...]
    valid_from:          int
    valid_duration_days: int

    @property
    def valid_until(self) -> int:
        return self.valid_from + self.valid_duration_days * SECONDS_PER_DAY

    def covers(self, scope: str) -> bool:
        return scope.lower() in {s.lower() for s in self.authorized_scopes}

    def is_valid_at(self, timestamp: int) -> bool:
        return self.valid_from <= timestamp < self.valid_until


@dataclass(frozen=True)
class SignedAuthorization:
    envelope:       AuthorizationEnvelope
    signature:      str
    signer_address: str


@dataclass(frozen=True)
class HandlePair:
    handle:           str
    contract_address: str


class DisclosureStatus(Enum):
    LOCKED = "LOCKED"
    DISCLOSING = "DISCLOSING"
    REVEALED = "REVEALED"
    FAILED = "FAILED"


class FailureReason(Enum):
    CANCELLED = "CANCELLED"
    UNAVAILABLE = "UNAVAILABLE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class DisclosureState:
    status:  DisclosureStatus = DisclosureStatus.LOCKED
    reason:  Optional[FailureReason] = None
    message: Optional[str] = None


@dataclass
class ItemRecord:
    """One inventory entry: the item plus its disclosure state machine."""
    item:  Item
    state: DisclosureState = field(default_factory=DisclosureState)


@dataclass
class SessionToken:
    """Lifetime marker for one loaded inventory. Cancelled on reload or disconnect."""
    owner:     str
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True
