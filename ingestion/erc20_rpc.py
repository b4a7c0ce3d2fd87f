# ingestion/erc20_rpc.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from common.errors import InvalidAddress, RpcError
from ingestion.rpc import JsonRpcClient

log = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

ERC20_NAME_SIG         = "0x06fdde03"
ERC20_DECIMALS_SIG     = "0x313ce567"
ERC20_SYMBOL_SIG       = "0x95d89b41"
ERC20_TOTAL_SUPPLY_SIG = "0x18160ddd"


@dataclass(frozen=True)
class TokenMetadata:
    contract: str
    name: str
    symbol: str
    decimals: int


def normalize_contract(addr: str) -> str:
    """
    Returns lowercased 0x-prefixed 40-hex address or raises InvalidAddress with a clear message.
    Accepts inputs with extra whitespace/quotes.
    """
    if not addr:
        raise InvalidAddress("Empty contract address.")
    a = str(addr).strip().strip('"').strip("'")
    h = a[2:] if a[:2] in ("0x", "0X") else a
    if len(h) != 40 or not _HEX_RE.match(h):
        raise InvalidAddress(f"Invalid contract address: {addr!r} (need 20-byte hex, e.g. 0x...40 hex chars)")
    return "0x" + h.lower()


def _eth_call(client: JsonRpcClient, to: str, data: str, block: Optional[int] = None) -> str:
    tag = hex(block) if isinstance(block, int) and block >= 0 else "latest"
    res = client.call("eth_call", [{"to": normalize_contract(to), "data": data}, tag])
    return res or "0x"


def _decode_uint256(hex_data: str) -> int:
    if not hex_data or hex_data == "0x":
        raise RpcError("empty eth_call result")
    h = hex_data[2:] if hex_data.startswith("0x") else hex_data
    try:
        return int(h[:64], 16)
    except ValueError as e:
        raise RpcError(f"not a uint256: {hex_data!r}") from e


def _decode_string(hex_data: str) -> str:
    """ABI string, falling back to bytes32 for tokens like MKR."""
    if not hex_data or hex_data == "0x":
        return ""
    h = hex_data[2:] if hex_data.startswith("0x") else hex_data
    try:
        if len(h) >= 128:
            length = int(h[64:128], 16)
            data = h[128:128 + length * 2]
            if len(data) == length * 2:
                return bytes.fromhex(data).decode("utf-8", errors="ignore")
        return bytes.fromhex(h[:64]).rstrip(b"\x00").decode("utf-8", errors="ignore")
    except ValueError:
        return ""


def erc20_total_supply_raw(client: JsonRpcClient, contract: str, block: Optional[int] = None) -> int:
    return _decode_uint256(_eth_call(client, contract, ERC20_TOTAL_SUPPLY_SIG, block))


def erc20_total_supply(client: JsonRpcClient, contract: str, decimals: int, block: Optional[int] = None) -> Decimal:
    return Decimal(erc20_total_supply_raw(client, contract, block)).scaleb(-decimals)


def erc20_decimals(client: JsonRpcClient, contract: str, block: Optional[int] = None) -> int:
    return _decode_uint256(_eth_call(client, contract, ERC20_DECIMALS_SIG, block))


def erc20_symbol(client: JsonRpcClient, contract: str, block: Optional[int] = None) -> str:
    return _decode_string(_eth_call(client, contract, ERC20_SYMBOL_SIG, block))


def erc20_name(client: JsonRpcClient, contract: str, block: Optional[int] = None) -> str:
    return _decode_string(_eth_call(client, contract, ERC20_NAME_SIG, block))


def fetch_metadata(client: JsonRpcClient, contract: str) -> TokenMetadata:
    """
    name, symbol and decimals of a token. decimals falls back to 18 when the
    contract does not answer; name and symbol fall back to empty strings.
    """
    c = normalize_contract(contract)
    try:
        dec = erc20_decimals(client, c)
    except RpcError as e:
        log.warning("decimals() unavailable for %s, assuming %d: %s", c, DEFAULT_DECIMALS, e)
        dec = DEFAULT_DECIMALS
    try:
        sym = erc20_symbol(client, c)
        name = erc20_name(client, c)
    except RpcError as e:
        log.warning("name()/symbol() unavailable for %s: %s", c, e)
        sym, name = "", ""
    return TokenMetadata(contract=c, name=name, symbol=sym, decimals=dec)


__all__ = [
    "DEFAULT_DECIMALS",
    "TokenMetadata",
    "normalize_contract",
    "erc20_total_supply_raw",
    "erc20_total_supply",
    "erc20_decimals",
    "erc20_symbol",
    "erc20_name",
    "fetch_metadata",
]
