"""
Counterfactual deployment of smart accounts through their factory
"""

import logging
from dataclasses import dataclass

from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

from chain import ChainClient, SenderAddressLookupFailed
from config import DEFAULT_SALT
from exceptions import AddressResolutionError

logger = logging.getLogger(__name__)

# Function selector for createAccount(address,uint256)
CREATE_ACCOUNT_SELECTOR = Web3.keccak(text="createAccount(address,uint256)")[:4]


@dataclass(frozen=True)
class DeploymentDescriptor:
    """Factory call that deploys the owner's account on first use"""
    factory: str
    owner: str
    salt: int = DEFAULT_SALT

    @property
    def create_call(self) -> bytes:
        return CREATE_ACCOUNT_SELECTOR + encode(
            ['address', 'uint256'],
            [Web3.to_checksum_address(self.owner), self.salt]
        )

    @property
    def init_code(self) -> bytes:
        return bytes(HexBytes(self.factory)) + self.create_call


async def predict_sender_address(chain: ChainClient, descriptor: DeploymentDescriptor) -> str:
    """
    Resolve the address the factory will deploy the account at.

    EntryPoint.getSenderAddress always reverts; the address travels in the
    SenderAddressResult error. A revert without it fails the lookup, and a
    normal return is rejected by the chain client.
    """
    lookup = await chain.simulate_sender_address(descriptor.init_code)
    if isinstance(lookup, SenderAddressLookupFailed):
        raise AddressResolutionError(
            f"Could not resolve sender address for owner {descriptor.owner} "
            f"via factory {descriptor.factory}: {lookup.error}"
        ) from lookup.error

    logger.info(f"Predicted smart account for {descriptor.owner}: {lookup.sender}")
    return lookup.sender
