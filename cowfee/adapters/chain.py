# /cowfee/adapters/chain.py
# Async JSON-RPC node client bound to the keeper account. Tags node errors for the executor.
import asyncio
from decimal import Decimal
from typing import Any, Dict

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound, Web3Exception, Web3RPCError

from cowfee.core.config import NETWORKS, settings
from cowfee.core.errors import ConfigurationError, ProviderError
from cowfee.core.gas import FeeData
from cowfee.core.logger import get_logger
from cowfee.core.tx import TransactionReceipt

log = get_logger(__name__)

FALLBACK_PRIORITY_FEE = int(Decimal("1.5") * 10**9)
NONCE_ALREADY_USED_MARKERS = ("nonce too low", "nonce has already been used")


def to_provider_error(error: Exception) -> ProviderError:
    message = str(error)
    if any(marker in message.lower() for marker in NONCE_ALREADY_USED_MARKERS):
        return ProviderError.nonce_already_used(message)
    return ProviderError(message)


def to_receipt(raw: Dict[str, Any]) -> TransactionReceipt:
    return TransactionReceipt(
        transaction_hash=Web3.to_hex(raw["transactionHash"]),
        status=raw["status"],
        block_number=raw.get("blockNumber"),
        gas_used=raw.get("gasUsed"),
    )


class Web3PendingTransaction:
    """
    A submitted transaction that has not been seen in a block yet.

    ``wait()`` polls for the receipt. Once the sender's mined nonce moves past
    ours without our receipt showing up, another transaction used the nonce:
    the blocks mined since submission are scanned for it and a replacement
    error is raised carrying its hash.
    """

    def __init__(self, client: "ChainClient", tx_hash: str, nonce: int | None, start_block: int):
        self.client = client
        self.hash = tx_hash
        self.nonce = nonce
        self.start_block = start_block

    async def wait(self) -> TransactionReceipt:
        while True:
            receipt = await self.client.get_transaction_receipt(self.hash)
            if receipt is not None:
                return receipt

            if self.nonce is not None and await self.client.get_transaction_count() > self.nonce:
                # Mined between the two calls
                receipt = await self.client.get_transaction_receipt(self.hash)
                if receipt is not None:
                    return receipt

                replacement = await self.client.find_transaction_by_nonce(self.nonce, self.start_block)
                if replacement is not None and replacement != self.hash:
                    raise ProviderError.replaced(self.hash, replacement)
                raise ProviderError.nonce_already_used(f"nonce {self.nonce} was mined by another transaction")

            await asyncio.sleep(self.client.poll_interval)


class ChainClient:
    """Signer and read access to one chain through an AsyncWeb3 provider."""

    def __init__(self, w3: AsyncWeb3, account: LocalAccount, chain_id: int, poll_interval: float | None = None):
        self.w3 = w3
        self.account = account
        self.chain_id = chain_id
        self.poll_interval = settings.RECEIPT_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval

    @property
    def address(self) -> str:
        return self.account.address

    async def get_chain_id(self) -> int:
        return await self.w3.eth.chain_id

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(Web3.to_checksum_address(address))

    async def get_transaction_count(self) -> int:
        return await self.w3.eth.get_transaction_count(self.address, "latest")

    async def get_gas_price(self) -> int:
        return await self.w3.eth.gas_price

    async def get_fee_data(self) -> FeeData:
        """
        Node fee data in the shape of ethers.js v5 ``getFeeData``, with one difference.

        ethers v5 always uses a fixed 1.5 gwei priority fee. Here the priority
        fee is read from the node with ``eth_maxPriorityFeePerGas``, and 1.5 gwei
        (``FALLBACK_PRIORITY_FEE``) is used only when the node does not support
        that call. Seed prices follow the node's tip estimate, which may be
        lower or higher than 1.5 gwei, or 0.

        ``max_fee_per_gas`` is ``2 * baseFeePerGas + priority fee``. The EIP-1559
        fields are only populated when the latest block reports a base fee.
        """
        block = await self.w3.eth.get_block("latest")
        gas_price = await self.get_gas_price()

        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeData(gas_price=gas_price)

        try:
            priority_fee = await self.w3.eth.max_priority_fee
        except Web3Exception:
            log.warning("MAX_PRIORITY_FEE_RPC_UNSUPPORTED_FALLING_BACK")
            priority_fee = FALLBACK_PRIORITY_FEE

        return FeeData(
            max_fee_per_gas=base_fee * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
            gas_price=gas_price,
        )

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return await self.w3.eth.estimate_gas(tx)

    async def send_transaction(self, tx: Dict[str, Any]) -> Web3PendingTransaction:
        full_tx = {"chainId": self.chain_id, **tx}
        start_block = await self.get_block_number()
        signed = self.account.sign_transaction(full_tx)
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Web3RPCError as e:
            raise to_provider_error(e) from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        log.info("TRANSACTION_BROADCASTED", tx_hash=tx_hash_hex, nonce=full_tx.get("nonce"))
        return Web3PendingTransaction(self, tx_hash_hex, full_tx.get("nonce"), start_block)

    async def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        try:
            raw = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return to_receipt(raw)

    async def wait_for_transaction(self, tx_hash: str) -> TransactionReceipt:
        while True:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                return receipt
            await asyncio.sleep(self.poll_interval)

    async def find_transaction_by_nonce(self, nonce: int, from_block: int) -> str | None:
        """Hash of the mined transaction sent by this account with ``nonce``, searching newest blocks first."""
        latest = await self.get_block_number()
        sender = self.address.lower()
        for number in range(latest, from_block - 1, -1):
            block = await self.w3.eth.get_block(number, full_transactions=True)
            for tx in block["transactions"]:
                if tx["from"].lower() == sender and tx["nonce"] == nonce:
                    return Web3.to_hex(tx["hash"])
        return None


async def validated_web3(network: str, rpc_url: str | None) -> AsyncWeb3:
    """Read-only connection to ``rpc_url`` (or the network default), checked to serve the expected chain."""
    if network not in NETWORKS:
        raise ConfigurationError(f"Invalid network {network}")
    details = NETWORKS[network]

    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url or details.rpc_url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT_SECONDS)}))
    provider_chain_id = await w3.eth.chain_id
    if provider_chain_id != details.chain_id:
        raise ConfigurationError(
            f"Provider chain ID {provider_chain_id} does not match expected chain ID {details.chain_id} for network {network}"
        )
    return w3


async def validated_client(network: str, rpc_url: str | None, private_key: str) -> ChainClient:
    w3 = await validated_web3(network, rpc_url)
    account = Account.from_key(private_key)
    chain_id = NETWORKS[network].chain_id
    log.info("CHAIN_CLIENT_INITIALIZED", network=network, chain_id=chain_id, address=account.address)
    return ChainClient(w3, account, chain_id)
