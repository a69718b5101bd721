"""
Constants and fakes shared by the smart account tests
"""
from web3 import Web3
from web3.providers import AsyncBaseProvider

from chain import SenderAddressResult
from user_operations import UserOperation

# Anvil's first development key
TEST_PRIV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

TEST_RPC_URL = "http://localhost:8545"
TEST_PAYMASTER_URL = "http://localhost:4337/paymaster"
TEST_ENTRY_POINT = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
TEST_FACTORY = Web3.to_checksum_address("0x" + "22" * 20)
TEST_PREDICTED = Web3.to_checksum_address("0xabcd" + "00" * 18)
TEST_TARGET = Web3.to_checksum_address("0x" + "11" * 20)
TEST_CHAIN_ID = 84532

TEST_PRIORITY_FEE = 1_000_000_000
TEST_BASE_FEE = 10_000_000_000
TEST_CREATION_GAS = 250_000

TEST_GAS_ESTIMATES = {
    "preVerificationGas": "0xc350",
    "verificationGasLimit": "0x249f0",
    "callGasLimit": "0x88b8",
}

SAMPLE_OP = UserOperation(
    sender=TEST_PREDICTED,
    nonce=3,
    call_data=b"\xb6\x1d\x27\xf6",
    call_gas_limit=35000,
    verification_gas_limit=150000,
    pre_verification_gas=50000,
    max_fee_per_gas=21_130_000_000,
    max_priority_fee_per_gas=1_130_000_000,
)


class FakeChainClient:
    """In-memory stand-in for ChainClient recording every call"""

    def __init__(self, nonce=0, lookup=None, base_fee=TEST_BASE_FEE, priority_fee=TEST_PRIORITY_FEE):
        self.nonce = nonce
        self.lookup = lookup or SenderAddressResult(sender=TEST_PREDICTED)
        self.base_fee = base_fee
        self.priority_fee = priority_fee
        self.gas_price = 5_000_000_000
        self.creation_gas = TEST_CREATION_GAS
        self.calls = []

    async def get_chain_id(self):
        self.calls.append("get_chain_id")
        return TEST_CHAIN_ID

    async def get_nonce(self, sender, key=0):
        self.calls.append(("get_nonce", sender, key))
        return self.nonce

    async def simulate_sender_address(self, init_code):
        self.calls.append(("simulate_sender_address", init_code))
        if isinstance(self.lookup, Exception):
            raise self.lookup
        return self.lookup

    async def get_max_priority_fee(self):
        self.calls.append("get_max_priority_fee")
        if isinstance(self.priority_fee, Exception):
            raise self.priority_fee
        return self.priority_fee

    async def get_base_fee(self):
        self.calls.append("get_base_fee")
        return self.base_fee

    async def get_gas_price(self):
        self.calls.append("get_gas_price")
        return self.gas_price

    async def estimate_gas(self, to, data, sender=None):
        self.calls.append(("estimate_gas", to, data, sender))
        return self.creation_gas


class ScriptedProvider(AsyncBaseProvider):
    """JSON-RPC provider answering from a method -> result table; other methods are not found"""

    def __init__(self, results):
        super().__init__()
        self.results = results
        self.methods = []

    async def make_request(self, method, params):
        self.methods.append(method)
        if method not in self.results:
            return {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": f"the method {method} does not exist"}}
        return {"jsonrpc": "2.0", "id": 1, "result": self.results[method]}

    async def is_connected(self, show_traceback=False):
        return True
