"""Minimal ABIs for the contracts the sweep talks to."""

from cowfee.abis.erc20 import ERC20_ABI
from cowfee.abis.fee_module import FEE_MODULE_ABI
from cowfee.abis.multicall3 import MULTICALL3_ABI, MULTICALL3_ADDRESS
from cowfee.abis.settlement import SETTLEMENT_ABI

__all__ = ["ERC20_ABI", "FEE_MODULE_ABI", "MULTICALL3_ABI", "MULTICALL3_ADDRESS", "SETTLEMENT_ABI"]
