"""
ERC-4337 bundler and paymaster JSON-RPC integration for smart accounts
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from web3 import Web3

from exceptions import BundlerError
from user_operations import UserOperation

logger = logging.getLogger(__name__)


def convert_user_operation_to_rpc_format(user_op: UserOperation) -> Dict[str, str]:
    """Convert a UserOperation to the bundler JSON format (EntryPoint v0.6)"""
    return {
        "sender": Web3.to_checksum_address(user_op.sender),
        "nonce": hex(user_op.nonce),
        "initCode": "0x" + user_op.init_code.hex(),
        "callData": "0x" + user_op.call_data.hex(),
        "callGasLimit": hex(user_op.call_gas_limit),
        "verificationGasLimit": hex(user_op.verification_gas_limit),
        "preVerificationGas": hex(user_op.pre_verification_gas),
        "maxFeePerGas": hex(user_op.max_fee_per_gas),
        "maxPriorityFeePerGas": hex(user_op.max_priority_fee_per_gas),
        "paymasterAndData": "0x" + user_op.paymaster_and_data.hex(),
        "signature": "0x" + user_op.signature.hex(),
    }


def parse_quantity(value: Any) -> int:
    """Bundlers return gas quantities either as hex strings or as numbers"""
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


class BundlerClient:
    """Client for ERC-4337 bundler and paymaster JSON-RPC endpoints"""

    def __init__(self, rpc_url: str, timeout: int = 30):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = requests.Session()
        self._request_id = 0

    def estimate_user_operation_gas(self, user_operation: UserOperation, entry_point: str) -> Dict:
        """Estimate gas limits for a UserOperation"""
        user_op_dict = convert_user_operation_to_rpc_format(user_operation)
        return self._make_bundler_request("eth_estimateUserOperationGas", [user_op_dict, entry_point])

    def sponsor_user_operation(self, user_operation: UserOperation, entry_point: str, context: Dict) -> Dict:
        """Ask a verifying paymaster to sponsor a UserOperation"""
        user_op_dict = convert_user_operation_to_rpc_format(user_operation)
        return self._make_bundler_request("pm_sponsorUserOperation", [user_op_dict, entry_point, context])

    def send_user_operation(self, user_operation: UserOperation, entry_point: str) -> str:
        """Send a signed UserOperation to the bundler and return its hash"""
        logger.info("Sending UserOperation to bundler...")

        user_op_dict = convert_user_operation_to_rpc_format(user_operation)
        logger.debug(f"Full UserOp to bundler: {user_op_dict}")
        user_operation_hash = self._make_bundler_request("eth_sendUserOperation", [user_op_dict, entry_point])

        logger.info(f"UserOperation sent successfully: {user_operation_hash}")
        return user_operation_hash

    def get_user_operation_receipt(self, user_operation_hash: str) -> Optional[Dict]:
        """Receipt of an included UserOperation, or None while it is pending"""
        return self._make_bundler_request("eth_getUserOperationReceipt", [user_operation_hash])

    def _make_bundler_request(self, method: str, params: List) -> Any:
        """Make JSON-RPC request to bundler"""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id
        }

        try:
            response = self.session.post(
                self.rpc_url,
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Request failed: {e}")
            raise BundlerError(f"{method} request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"HTTP error: {response.status_code}")
            raise BundlerError(f"{method} returned HTTP {response.status_code}", code=response.status_code)

        result = response.json()
        if 'error' in result:
            error = result['error']
            message = error.get('message', 'Unknown error')
            logger.error(f"Bundler error: {message}")
            raise BundlerError(f"{method} failed: {message}", code=error.get('code'))
        if 'result' not in result:
            raise BundlerError(f"{method} returned no result")
        return result['result']
