"""
CLI for the encrypted-stats inventory.

Usage:
    # List an owner's NFTs (stats stay locked)
    python -m FHE_Inventory.cli list --owner 0xOwner

    # Decrypt the stats of one token (signer key from FHE_PRIVATE_KEY)
    python -m FHE_Inventory.cli reveal --token-id 3
    python -m FHE_Inventory.cli reveal --token-id 3 --confirm

    # Decrypt every token the signer owns
    python -m FHE_Inventory.cli reveal --all
"""

import argparse
import asyncio
import sys

from eth_utils import is_address

from FHE_Inventory.display import Display
from FHE_Inventory.fhe_client.controller import ItemDisclosureController
from FHE_Inventory.fhe_client.coordinator import InventoryCoordinator
from FHE_Inventory.fhe_client.ledger import LedgerHandleSource
from FHE_Inventory.fhe_client.relay_client import DisclosureClient
from FHE_Inventory.fhe_client.signer import ConfirmingSigner, LocalAccountSigner
from FHE_Inventory.fhe_shared import config
from FHE_Inventory.fhe_shared.errors import LoadFailedError, SignerUnavailableError, UnknownItemError
from FHE_Inventory.fhe_shared.log import get_logger, setup_logging
from FHE_Inventory.fhe_shared.types import DisclosureStatus

D = Display  # shorthand
logger = get_logger(__name__)


def _check_address(label: str, value: str) -> bool:
    if is_address(value):
        return True
    D.error(f"Invalid {label} address {value!r}")
    return False


def _print_inventory(coordinator: InventoryCoordinator) -> None:
    records = coordinator.records()
    if not records:
        D.arrow("No NFTs yet. Try attacking!")
        return
    for record in records:
        D.item_row(record.item, record.state)


async def cmd_list(args) -> int:
    if not (_check_address("contract", args.contract) and _check_address("owner", args.owner)):
        return 1
    source = LedgerHandleSource(args.contract, args.rpc_url)
    coordinator = InventoryCoordinator(source)
    try:
        D.header(f"Inventory of {args.owner}")
        await coordinator.load(args.owner)
        _print_inventory(coordinator)
        return 0
    except LoadFailedError as e:
        D.error(str(e))
        return 1
    finally:
        await source.close()


async def cmd_reveal(args) -> int:
    if not _check_address("contract", args.contract):
        return 1
    if args.owner is not None and not _check_address("owner", args.owner):
        return 1
    try:
        signer = LocalAccountSigner.from_env()
    except SignerUnavailableError as e:
        D.error(str(e))
        signer = None

    owner = args.owner
    if owner is None:
        if signer is None:
            D.error("Pass --owner or set FHE_PRIVATE_KEY")
            return 1
        owner = await signer.get_address()
    if signer is not None and args.confirm:
        signer = ConfirmingSigner(signer)

    source = LedgerHandleSource(args.contract, args.rpc_url)
    relay = DisclosureClient(args.relay_url)
    controller = ItemDisclosureController(signer, relay, scope=args.contract)
    coordinator = InventoryCoordinator(source, controller)
    try:
        D.header(f"Decrypt stats for {owner}")
        await coordinator.load(owner)

        if args.all:
            states = await coordinator.reveal_all()
            revealed = sum(s.status == DisclosureStatus.REVEALED for s in states.values())
            if revealed:
                D.success(f"Revealed {revealed} of {len(states)} tokens")
        else:
            D.arrow(f"Requesting decryption of token #{args.token_id}")
            state = await coordinator.reveal(args.token_id)
            if state.status == DisclosureStatus.REVEALED:
                D.success(f"Token #{args.token_id} revealed")
            elif state.message:
                D.error(state.message)
        _print_inventory(coordinator)
        return 0
    except (LoadFailedError, UnknownItemError) as e:
        D.error(str(e))
        return 1
    finally:
        await relay.close()
        await source.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Encrypted NFT stats inventory")
    parser.add_argument("--contract", default=config.GAME_CONTRACT_ADDRESS, help="Game contract address")
    parser.add_argument("--rpc-url", default=config.RPC_URL)
    parser.add_argument("--relay-url", default=config.RELAY_URL)
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List owned NFTs")
    p_list.add_argument("--owner", required=True)
    p_list.set_defaults(func=cmd_list)

    p_reveal = sub.add_parser("reveal", help="Decrypt NFT stats")
    target = p_reveal.add_mutually_exclusive_group(required=True)
    target.add_argument("--token-id", type=int)
    target.add_argument("--all", action="store_true")
    p_reveal.add_argument("--owner", help="Defaults to the signer's address")
    p_reveal.add_argument("--confirm", action="store_true", help="Ask before each signature")
    p_reveal.set_defaults(func=cmd_reveal)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
