"""
Ephemeral key material for disclosure sessions.

Each reveal generates a fresh X25519 key pair. The relay seals every
plaintext to the public half (NaCl SealedBox), so only the holder of the
private half can read the result. Key pairs live for one session and are
never persisted.
"""

import nacl.exceptions
from nacl.public import PrivateKey, PublicKey, SealedBox

from FHE_Inventory.fhe_shared.types import EphemeralKeyPair

X25519_KEY_SIZE = 32


def generate_keypair() -> EphemeralKeyPair:
    """Return a fresh hex-encoded X25519 key pair."""
    sk = PrivateKey.generate()
    return EphemeralKeyPair(
        public_key=bytes(sk.public_key).hex(),
        private_key=bytes(sk).hex(),
    )


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def seal_value(public_key_hex: str, plaintext: str) -> str:
    """Seal a decimal-string plaintext to an ephemeral public key (relay side)."""
    pk = PublicKey(bytes.fromhex(strip_hex_prefix(public_key_hex)))
    return SealedBox(pk).encrypt(plaintext.encode("ascii")).hex()


def open_value(keypair: EphemeralKeyPair, sealed_hex: str) -> str:
    """Open a sealed result with the session private key.

    Raises ValueError if the payload is not valid hex or does not decrypt.
    """
    sk = PrivateKey(bytes.fromhex(keypair.private_key))
    try:
        pt_bytes = SealedBox(sk).decrypt(bytes.fromhex(strip_hex_prefix(sealed_hex)))
    except nacl.exceptions.CryptoError as e:
        raise ValueError(f"sealed value does not open: {e}")
    return pt_bytes.decode("ascii")
