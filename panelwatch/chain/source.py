from __future__ import annotations

from typing import Any, Dict, List, Mapping, Protocol

import requests
import structlog
from web3 import Web3

from panelwatch.errors import ChainSourceError

log = structlog.get_logger(__name__)


class ChainSource(Protocol):
    def block_number(self) -> int: ...

    def get_logs(self, from_block: int, to_block: int) -> List[Mapping[str, Any]]: ...


class Web3ChainSource:
    """
    JSON-RPC access for one contract and one event topic.

    Calls are blocking; the poll loop runs them off the event loop.
    """

    def __init__(self, rpc_url: str, contract_address: str, topic: str, timeout_s: float = 30.0) -> None:
        self.rpc_url = rpc_url
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.topic = topic
        self.s = requests.Session()
        self.w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_s}, session=self.s)
        )

    def block_number(self) -> int:
        try:
            return int(self.w3.eth.block_number)
        except Exception as e:
            raise ChainSourceError(f"eth_blockNumber failed: {e}") from e

    def filter_params(self, from_block: int, to_block: int) -> Dict[str, Any]:
        return {
            "address": self.contract_address,
            "topics": [self.topic],
            "fromBlock": from_block,
            "toBlock": to_block,
        }

    def get_logs(self, from_block: int, to_block: int) -> List[Mapping[str, Any]]:
        params = self.filter_params(from_block, to_block)
        try:
            logs = self.w3.eth.get_logs(params)
        except Exception as e:
            raise ChainSourceError(f"eth_getLogs [{from_block}, {to_block}] failed: {e}") from e
        log.debug("logs_fetched", from_block=from_block, to_block=to_block, count=len(logs))
        return list(logs)

    def close(self) -> None:
        self.s.close()
