"""
Authorization envelope: what the owner signs before a disclosure.

The envelope binds an ephemeral public key to a set of contract scopes and a
validity window. It is signed as EIP-712 typed data; the relay rebuilds the
exact same typed data from the request and recovers the signer, so any drift
in field names, types or ordering here invalidates every signature.

    domain:  {name, version, chainId, verifyingContract}
    message: UserDecryptRequestVerification {
                 publicKey          bytes
                 contractAddresses  address[]
                 contractsChainId   uint256
                 startTimestamp     uint256
                 durationDays       uint256
             }
"""

from dataclasses import dataclass
from typing import Iterable

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import is_address, to_checksum_address

from FHE_Inventory.fhe_shared import config
from FHE_Inventory.fhe_shared.errors import InvalidDurationError, InvalidScopeError
from FHE_Inventory.fhe_shared.key_engine import strip_hex_prefix
from FHE_Inventory.fhe_shared.types import AuthorizationEnvelope


EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

USER_DECRYPT_FIELDS = [
    {"name": "publicKey", "type": "bytes"},
    {"name": "contractAddresses", "type": "address[]"},
    {"name": "contractsChainId", "type": "uint256"},
    {"name": "startTimestamp", "type": "uint256"},
    {"name": "durationDays", "type": "uint256"},
]


@dataclass(frozen=True)
class SigningDomain:
    name: str = config.EIP712_DOMAIN_NAME
    version: str = config.EIP712_DOMAIN_VERSION
    chain_id: int = config.GATEWAY_CHAIN_ID
    verifying_contract: str = config.DECRYPTION_VERIFIER_ADDRESS
    contracts_chain_id: int = config.CHAIN_ID


DEFAULT_DOMAIN = SigningDomain()


def normalize_scopes(scopes: Iterable[str]) -> tuple[str, ...]:
    """Checksum and de-duplicate contract addresses, keeping first-seen order."""
    seen = set()
    out = []
    for scope in scopes:
        if not isinstance(scope, str) or not is_address(scope):
            raise InvalidScopeError(scope)
        checksummed = to_checksum_address(scope)
        if checksummed in seen:
            continue
        seen.add(checksummed)
        out.append(checksummed)
    return tuple(out)


def build_envelope(
    public_key: str,
    scopes: Iterable[str],
    now: int,
    duration_days: int,
) -> AuthorizationEnvelope:
    """Build the envelope for one disclosure session. Pure function of its inputs."""
    normalized = normalize_scopes(scopes)
    if not normalized:
        raise InvalidScopeError("<empty>")
    if isinstance(duration_days, bool) or not isinstance(duration_days, int) or duration_days <= 0:
        raise InvalidDurationError(duration_days)

    return AuthorizationEnvelope(
        public_key=strip_hex_prefix(public_key).lower(),
        authorized_scopes=normalized,
        valid_from=int(now),
        valid_duration_days=duration_days,
    )


def envelope_typed_data(
    envelope: AuthorizationEnvelope,
    domain: SigningDomain = DEFAULT_DOMAIN,
) -> dict:
    """Return the full EIP-712 message for an envelope."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS,
            config.EIP712_PRIMARY_TYPE: USER_DECRYPT_FIELDS,
        },
        "primaryType": config.EIP712_PRIMARY_TYPE,
        "domain": {
            "name": domain.name,
            "version": domain.version,
            "chainId": domain.chain_id,
            "verifyingContract": to_checksum_address(domain.verifying_contract),
        },
        "message": {
            "publicKey": "0x" + envelope.public_key,
            "contractAddresses": list(envelope.authorized_scopes),
            "contractsChainId": domain.contracts_chain_id,
            "startTimestamp": envelope.valid_from,
            "durationDays": envelope.valid_duration_days,
        },
    }


def recover_signer(
    envelope: AuthorizationEnvelope,
    signature: str,
    domain: SigningDomain = DEFAULT_DOMAIN,
) -> str:
    """Recover the checksummed address that signed an envelope."""
    signable = encode_typed_data(full_message=envelope_typed_data(envelope, domain))
    return Account.recover_message(signable, signature="0x" + strip_hex_prefix(signature))
