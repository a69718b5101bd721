"""
Shared fixtures for the smart account tests
"""
from unittest.mock import MagicMock

import pytest

from bundler import BundlerClient
from helpers import TEST_GAS_ESTIMATES, FakeChainClient


@pytest.fixture
def fake_chain():
    return FakeChainClient()


@pytest.fixture
def fake_bundler():
    bundler = MagicMock(spec=BundlerClient)
    bundler.estimate_user_operation_gas.return_value = dict(TEST_GAS_ESTIMATES)
    bundler.send_user_operation.return_value = "0x" + "ab" * 32
    return bundler
