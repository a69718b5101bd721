"""
Smart Account UserOperation command line

1. address: print the counterfactual smart account address of the owner key
2. send: build, sign and submit an execute(to, value, data) UserOperation
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from web3.exceptions import Web3Exception

from config import SmartAccountConfig
from exceptions import UserOperationError
from smart_account import SmartAccount

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build and send ERC-4337 UserOperations")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("address", help="Print the smart account address for the owner key")

    send = commands.add_parser("send", help="Send a call from the smart account")
    send.add_argument("to", help="Target address (0x...)")
    send.add_argument("value", type=int, help="Amount in wei")
    send.add_argument("data", nargs="?", default="0x", help="Call data (0x...)")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, config: SmartAccountConfig) -> str:
    account = await SmartAccount.from_config(config)
    if args.command == "address":
        return account.address

    user_operation = await account.execute(args.to, args.value, args.data).build()
    return await asyncio.to_thread(account.send, user_operation)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        result = asyncio.run(run(args, SmartAccountConfig()))
    except (UserOperationError, Web3Exception, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    print(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
