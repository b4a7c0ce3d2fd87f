import pytest

from common.errors import ProviderUnavailable, RpcError
from common.utils import hex_to_int
from ingestion.erc20 import TRANSFER_TOPIC0

ZERO = "0x" + "0" * 40
TOKEN = "0x" + "ab" * 20


def addr(tag: str) -> str:
    """0x address padded from a short hex tag, e.g. addr("a") -> 0x000...0a."""
    return "0x" + tag.rjust(40, "0")


def word(v: int) -> str:
    return "0x" + format(v, "064x")


def topic_for(address: str) -> str:
    return "0x" + "00" * 12 + address[2:]


def transfer_log(frm: str, to: str, value: int, block: int, tx: str = None, log_index: int = 0) -> dict:
    return {
        "address": TOKEN,
        "transactionHash": tx or f"0x{block:x}{log_index:x}",
        "blockNumber": hex(block),
        "logIndex": hex(log_index),
        "topics": [TRANSFER_TOPIC0, topic_for(frm), topic_for(to)],
        "data": word(value),
    }


class FakeChain:
    """
    In-process stand-in for JsonRpcClient: answers the handful of JSON-RPC
    methods the engine uses from canned data.
    """

    def __init__(self, logs=None, height=100, supply=0, decimals=18, codes=None,
                 failing_codes=(), down=False):
        self.logs = list(logs or [])
        self.height = height
        self.supply = supply
        self.decimals = decimals
        self.codes = dict(codes or {})
        self.failing_codes = set(failing_codes)
        self.down = down
        self.calls = []

    def call(self, method, params=None):
        params = list(params or [])
        self.calls.append((method, params))
        if self.down:
            raise ProviderUnavailable("RPC endpoint unreachable")
        if method == "eth_blockNumber":
            return hex(self.height)
        if method == "eth_getLogs":
            f = params[0]
            lo, hi = hex_to_int(f["fromBlock"]), hex_to_int(f["toBlock"])
            return [lg for lg in self.logs if lo <= hex_to_int(lg["blockNumber"]) <= hi]
        if method == "eth_call":
            sig = params[0]["data"]
            if sig == "0x18160ddd":
                return word(self.supply)
            if sig == "0x313ce567":
                if self.decimals is None:
                    raise RpcError("execution reverted")
                return word(self.decimals)
            return "0x"
        if method == "eth_getCode":
            return self.get_code(params[0])
        raise RpcError(f"unsupported method {method}")

    def get_code(self, address, block="latest"):
        if address in self.failing_codes:
            raise RpcError(f"getCode failed for {address}")
        return self.codes.get(address, "0x")

    def get_logs_calls(self):
        return [p[0] for m, p in self.calls if m == "eth_getLogs"]


class FakeResp:
    def __init__(self, json_data=None, status_code=200, headers=None):
        self._json = json_data
        self.status_code = status_code
        self.headers = headers or {}
        self.reason = "fake"

    def raise_for_status(self):
        import requests
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")

    def json(self):
        return self._json


@pytest.fixture
def make_chain():
    return FakeChain
