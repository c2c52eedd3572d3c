# /cowfee/abis/fee_module.py
def _view(name: str, output_type: str, internal_type: str | None = None) -> dict:
    return {
        "type": "function",
        "name": name,
        "inputs": [],
        "outputs": [{"name": "", "type": output_type, "internalType": internal_type or output_type}],
        "stateMutability": "view",
    }


FEE_MODULE_ABI = [
    _view("appData", "bytes32"),
    _view("nextValidTo", "uint32"),
    _view("receiver", "address"),
    _view("targetSafe", "address", "contract ISafe"),
    _view("wrappedNativeToken", "address"),
    _view("keeper", "address"),
    _view("settlement", "address"),
    _view("vaultRelayer", "address"),
    _view("minOut", "uint256"),
    {
        "type": "function",
        "name": "drip",
        "inputs": [
            {"name": "_approveTokens", "type": "address[]", "internalType": "address[]"},
            {
                "name": "_swapTokens",
                "type": "tuple[]",
                "internalType": "struct COWFeeModule.SwapToken[]",
                "components": [
                    {"name": "token", "type": "address", "internalType": "address"},
                    {"name": "sellAmount", "type": "uint256", "internalType": "uint256"},
                    {"name": "buyAmount", "type": "uint256", "internalType": "uint256"},
                ],
            },
        ],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
]
