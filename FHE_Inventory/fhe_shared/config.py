import os

# Ledger (Sepolia)

RPC_URL                 = os.environ.get("FHE_RPC_URL", "https://ethereum-sepolia-rpc.publicnode.com")
LEDGER_TIMEOUT_SECONDS  = 15
CHAIN_ID                = int(os.environ.get("FHE_CHAIN_ID", "11155111"))

GAME_CONTRACT_ADDRESS   = os.environ.get(
    "FHE_GAME_CONTRACT",
    "0x0000000000000000000000000000000000000000",
)

# Relay

RELAY_URL               = os.environ.get("FHE_RELAY_URL", "http://localhost:8080")
RELAY_DECRYPT_PATH      = "/v1/user-decrypt"
RELAY_TIMEOUT_SECONDS   = 30

# Authorization envelope (EIP-712)

DISCLOSURE_VALIDITY_DAYS    = 10        # policy constant, not derived from the item
SECONDS_PER_DAY             = 86_400

EIP712_DOMAIN_NAME          = "Decryption"
EIP712_DOMAIN_VERSION       = "1"
GATEWAY_CHAIN_ID            = int(os.environ.get("FHE_GATEWAY_CHAIN_ID", "55815"))
DECRYPTION_VERIFIER_ADDRESS = os.environ.get(
    "FHE_DECRYPTION_VERIFIER",
    "0xb6E160B1ff80D67Bfe90A85eE06Ce0A2613607D1",
)
EIP712_PRIMARY_TYPE         = "UserDecryptRequestVerification"

# Item classification

RARITY_LABELS = {
    0: "Common",
    1: "Rare",
    2: "Legendary",
}

# User-facing failure messages

MSG_RELAY_UNAVAILABLE   = "Encryption service unavailable"
MSG_SIGNER_UNAVAILABLE  = "Connect wallet to decrypt"
MSG_CANCELLED           = "Signature request cancelled"
MSG_DECRYPT_FAILED      = "Decrypt failed"

# Logging

LOG_LEVEL               = os.environ.get("FHE_LOG_LEVEL", "INFO")
