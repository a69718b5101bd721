"""
Configuration for smart account user operations
"""

import os
from dataclasses import dataclass
from typing import Optional

# Network constants
ENTRYPOINT_V06 = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

# Sequence key used for the account nonce
DEFAULT_NONCE_KEY = 0

# Salt passed to the factory's createAccount
DEFAULT_SALT = 0

# Default gas limits for UserOperations, replaced by the gas middlewares
DEFAULT_GAS_LIMITS = {
    "call": 35000,
    "verification": 70000,
    "pre_verification": 21000
}


@dataclass
class SmartAccountConfig:
    """Configuration for smart account operations"""

    def __init__(
        self,
        signing_key: Optional[str] = None,
        node_rpc_url: Optional[str] = None,
        entry_point_address: Optional[str] = None,
        factory_address: Optional[str] = None,
        paymaster_url: Optional[str] = None,
        paymaster_context_type: Optional[str] = None,
    ):
        # Owner key
        self.signing_key = signing_key or os.environ.get('SIGNING_KEY')
        if not self.signing_key:
            raise ValueError("SIGNING_KEY environment variable is required")

        # ERC-4337 node (serves both eth_* and bundler methods)
        self.node_rpc_url = node_rpc_url or os.environ.get('ERC4337_NODE_RPC')
        if not self.node_rpc_url:
            raise ValueError("ERC4337_NODE_RPC environment variable is required")

        # Contracts
        self.entry_point_address = (
            entry_point_address or os.environ.get('ENTRY_POINT_ADDRESS', ENTRYPOINT_V06)
        )
        self.factory_address = factory_address or os.environ.get('ACCOUNT_FACTORY_ADDRESS')
        if not self.factory_address:
            raise ValueError("ACCOUNT_FACTORY_ADDRESS environment variable is required")

        # Optional paymaster sponsorship
        self.paymaster_url = paymaster_url or os.environ.get('PAYMASTER_URL')
        self.paymaster_context_type = (
            paymaster_context_type or os.environ.get('PAYMASTER_CONTEXT_TYPE', 'payg')
        )

    @property
    def paymaster_context(self) -> dict:
        return {"type": self.paymaster_context_type}
