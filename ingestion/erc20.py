# ingestion/erc20.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from analytics.models import TransferEvent
from common.errors import MalformedEvent
from common.utils import hex_to_int, strip_0x

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC0 = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

ZERO_ADDRESS = "0x" + "0" * 40


@dataclass(frozen=True)
class TransferLayout:
    """
    Where each Transfer parameter lives in a log.
    `indexed` holds the roles found in topics[1:], `data` the roles packed in data words.
    Roles are "from", "to" and "value".
    """
    indexed: Tuple[str, ...] = ("from", "to")
    data: Tuple[str, ...] = ("value",)


STANDARD_LAYOUT = TransferLayout()

_ROLE_ALIASES = {
    "from": "from", "_from": "from", "src": "from", "sender": "from",
    "to": "to", "_to": "to", "dst": "to", "recipient": "to",
    "value": "value", "_value": "value", "amount": "value", "wad": "value", "tokens": "value",
}
_POSITIONAL_ROLES = ("from", "to", "value")


def transfer_layout(abi: Optional[List[Dict[str, Any]]]) -> TransferLayout:
    """
    Read the Transfer event entry of a contract ABI. Without an ABI the
    standard ERC-20 layout is assumed.
    """
    if not abi:
        return STANDARD_LAYOUT
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == "Transfer":
            inputs = entry.get("inputs") or []
            if len(inputs) != 3:
                raise ValueError("Transfer event must have exactly three inputs")
            indexed, data = [], []
            for pos, inp in enumerate(inputs):
                role = _ROLE_ALIASES.get(str(inp.get("name", "")).lower(), _POSITIONAL_ROLES[pos])
                (indexed if inp.get("indexed") else data).append(role)
            if sorted(indexed + data) != sorted(_POSITIONAL_ROLES):
                raise ValueError(f"Transfer event inputs are ambiguous: {inputs!r}")
            return TransferLayout(indexed=tuple(indexed), data=tuple(data))
    raise ValueError("ABI does not declare a Transfer event")


def _word_to_addr(word: str) -> str:
    # 32-byte word; the last 20 bytes are the address
    w = strip_0x(str(word)).lower()
    if len(w) < 40:
        raise MalformedEvent(f"address word too short: {word!r}")
    int(w, 16)
    return "0x" + w[-40:]


def _data_words(data: str) -> List[str]:
    h = strip_0x(data or "")
    return ["0x" + h[i:i + 64] for i in range(0, len(h), 64) if h[i:i + 64]]


def is_erc20_transfer(log: dict) -> bool:
    topics = log.get("topics") or []
    if not topics or not isinstance(topics, list):
        return False
    return str(topics[0]).lower() == TRANSFER_TOPIC0


def decode_transfer_log(log: dict, layout: TransferLayout = STANDARD_LAYOUT) -> Optional[TransferEvent]:
    """
    Decode a raw eth_getLogs entry into a TransferEvent.
    Returns None when the log is not a Transfer; raises MalformedEvent when it
    is one but a party or the value is missing. The value is kept raw; token
    unit conversion belongs to the ledger replay.
    """
    if not is_erc20_transfer(log):
        return None

    topics = log.get("topics") or []
    words = _data_words(log.get("data", ""))
    fields: Dict[str, str] = {}
    for i, role in enumerate(layout.indexed, start=1):
        if i < len(topics) and topics[i]:
            fields[role] = topics[i]
    for i, role in enumerate(layout.data):
        if i < len(words):
            fields[role] = words[i]

    missing = [r for r in _POSITIONAL_ROLES if r not in fields]
    if missing:
        raise MalformedEvent(f"Transfer log missing {', '.join(missing)}: tx={log.get('transactionHash')}")

    try:
        block_number = hex_to_int(log.get("blockNumber"))
        log_index = hex_to_int(log.get("logIndex", 0))
    except (TypeError, ValueError) as e:
        raise MalformedEvent(f"bad block position in log tx={log.get('transactionHash')}: {e}") from e

    try:
        sender = _word_to_addr(fields["from"])
        recipient = _word_to_addr(fields["to"])
    except ValueError as e:
        raise MalformedEvent(f"bad address topic in tx={log.get('transactionHash')}: {e}") from e

    return TransferEvent(
        sender=sender,
        recipient=recipient,
        amount=fields["value"],
        block_number=block_number,
        tx_hash=log.get("transactionHash") or "",
        log_index=log_index,
    )


__all__ = [
    "TRANSFER_TOPIC0",
    "ZERO_ADDRESS",
    "TransferLayout",
    "STANDARD_LAYOUT",
    "transfer_layout",
    "is_erc20_transfer",
    "decode_transfer_log",
]
