"""Terminal rendering for the inventory CLI."""

from FHE_Inventory.fhe_shared import config
from FHE_Inventory.fhe_shared.types import DisclosureState, DisclosureStatus, FailureReason, Item


class Display:
    """Terminal formatting with ANSI colors."""

    RESET   = "\033[0m"
    BOLD    = "\033[1m"
    DIM     = "\033[2m"

    RED     = "\033[91m"
    GREEN   = "\033[92m"
    YELLOW  = "\033[93m"
    BLUE    = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN    = "\033[96m"
    WHITE   = "\033[97m"

    RARITY_COLORS = {
        0: WHITE,
        1: BLUE,
        2: MAGENTA,
    }

    LOCK = "🔒"

    @classmethod
    def header(cls, title: str) -> None:
        line = "═" * 60
        print(f"\n{cls.CYAN}{cls.BOLD}{line}")
        print(f"  {title}")
        print(f"{line}{cls.RESET}\n")

    @classmethod
    def arrow(cls, msg: str) -> None:
        print(f"  {cls.BLUE}→{cls.RESET} {msg}")

    @classmethod
    def success(cls, msg: str) -> None:
        print(f"  {cls.GREEN}✓{cls.RESET} {msg}")

    @classmethod
    def error(cls, msg: str) -> None:
        print(f"  {cls.RED}✗{cls.RESET} {msg}")

    @classmethod
    def rarity_label(cls, rarity) -> str:
        name = config.RARITY_LABELS.get(int(rarity), str(int(rarity)))
        color = cls.RARITY_COLORS.get(int(rarity), cls.WHITE)
        return f"{color}{cls.BOLD}{name}{cls.RESET}"

    @classmethod
    def stat(cls, value) -> str:
        return cls.LOCK if value is None else str(value)

    @classmethod
    def state_label(cls, state: DisclosureState) -> str:
        if state.status == DisclosureStatus.DISCLOSING:
            return f"{cls.YELLOW}Decrypting...{cls.RESET}"
        if state.status == DisclosureStatus.REVEALED:
            return f"{cls.GREEN}Revealed{cls.RESET}"
        if state.reason == FailureReason.CANCELLED:
            return f"{cls.YELLOW}{state.message}{cls.RESET}"
        if state.message:
            return f"{cls.RED}{state.message}{cls.RESET}"
        return f"{cls.DIM}Locked{cls.RESET}"

    @classmethod
    def item_row(cls, item: Item, state: DisclosureState) -> None:
        print(
            f"  Token #{item.token_id:<6} "
            f"{cls.rarity_label(item.rarity):<24} "
            f"ATK {cls.stat(item.attack):>6}  "
            f"DEF {cls.stat(item.defense):>6}  "
            f"{cls.state_label(state)}"
        )
