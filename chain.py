"""
Read-only EntryPoint and node access for smart account user operations
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from eth_abi import decode
from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3._utils.rpc_abi import RPC
from web3.exceptions import ContractLogicError

from config import DEFAULT_NONCE_KEY
from exceptions import ProtocolInvariantViolation

logger = logging.getLogger(__name__)

# Revert raised by EntryPoint.getSenderAddress carrying the counterfactual address
SENDER_ADDRESS_RESULT_SELECTOR = bytes(Web3.keccak(text="SenderAddressResult(address)")[:4])

ENTRY_POINT_ABI = [
    {
        "inputs": [{"name": "sender", "type": "address"}, {"name": "key", "type": "uint192"}],
        "name": "getNonce",
        "outputs": [{"name": "nonce", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "initCode", "type": "bytes"}],
        "name": "getSenderAddress",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"name": "sender", "type": "address"}],
        "name": "SenderAddressResult",
        "type": "error"
    },
]


@dataclass(frozen=True)
class SenderAddressResult:
    """getSenderAddress reverted as expected and revealed the sender"""
    sender: str


@dataclass(frozen=True)
class SenderAddressLookupFailed:
    """getSenderAddress reverted without a SenderAddressResult payload"""
    error: Exception


SenderAddressLookup = Union[SenderAddressResult, SenderAddressLookupFailed]


def decode_sender_address_revert(revert_data) -> Optional[str]:
    """Extract the sender from SenderAddressResult revert data, if present"""
    if not revert_data:
        return None
    if isinstance(revert_data, str):
        try:
            data = bytes(HexBytes(revert_data))
        except ValueError:
            return None
    elif isinstance(revert_data, (bytes, bytearray)):
        data = bytes(revert_data)
    else:
        return None
    if not data.startswith(SENDER_ADDRESS_RESULT_SELECTOR) or len(data) < 36:
        return None
    (sender,) = decode(['address'], data[4:36])
    return Web3.to_checksum_address(sender)


class ChainClient:
    """Async node client scoped to one entry point"""

    def __init__(self, rpc_url: str, entry_point_address: str, web3: Optional[AsyncWeb3] = None):
        self.rpc_url = rpc_url
        self.web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.entry_point_address = Web3.to_checksum_address(entry_point_address)
        self.entry_point = self.web3.eth.contract(
            address=self.entry_point_address,
            abi=ENTRY_POINT_ABI
        )

    async def get_chain_id(self) -> int:
        return await self.web3.eth.chain_id

    async def get_nonce(self, sender: str, key: int = DEFAULT_NONCE_KEY) -> int:
        """Get current nonce for the account from the EntryPoint"""
        nonce = await self.entry_point.functions.getNonce(
            Web3.to_checksum_address(sender), key
        ).call()
        logger.info(f"Current nonce for {sender}: {nonce}")
        return nonce

    async def simulate_sender_address(self, init_code: bytes) -> SenderAddressLookup:
        """Run getSenderAddress, which by protocol always reverts with the address"""
        try:
            result = await self.entry_point.functions.getSenderAddress(init_code).call()
        except ContractLogicError as e:
            sender = decode_sender_address_revert(e.data)
            if sender is None:
                logger.error(f"getSenderAddress reverted without an address: {e}")
                return SenderAddressLookupFailed(error=e)
            logger.info(f"getSenderAddress revealed sender {sender}")
            return SenderAddressResult(sender=sender)

        raise ProtocolInvariantViolation(f"getSenderAddress: unexpected result {result!r}")

    async def get_max_priority_fee(self) -> int:
        """Raw eth_maxPriorityFeePerGas; nodes without it raise MethodUnavailable"""
        fee = await self.web3.manager.coro_request(RPC.eth_maxPriorityFeePerGas, [])
        return int(fee, 16) if isinstance(fee, str) else int(fee)

    async def get_base_fee(self) -> Optional[int]:
        block = await self.web3.eth.get_block('latest')
        return block.get('baseFeePerGas')

    async def get_gas_price(self) -> int:
        return await self.web3.eth.gas_price

    async def estimate_gas(self, to: str, data: bytes, sender: Optional[str] = None) -> int:
        transaction = {"to": Web3.to_checksum_address(to), "data": data}
        if sender:
            transaction["from"] = Web3.to_checksum_address(sender)
        return await self.web3.eth.estimate_gas(transaction)
