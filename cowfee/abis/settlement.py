# /cowfee/abis/settlement.py
SETTLEMENT_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "owner", "type": "address"},
            {"indexed": False, "internalType": "contract IERC20", "name": "sellToken", "type": "address"},
            {"indexed": False, "internalType": "contract IERC20", "name": "buyToken", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "sellAmount", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "buyAmount", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "feeAmount", "type": "uint256"},
            {"indexed": False, "internalType": "bytes", "name": "orderUid", "type": "bytes"},
        ],
        "name": "Trade",
        "type": "event",
    },
]
