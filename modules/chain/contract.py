from __future__ import annotations

# Subset of the deployed NFT contract ABI the pipeline touches.
NFT_ABI: list[dict] = [
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "payable",
        "inputs": [{"name": "_tokenURI", "type": "string"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "cost",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "totalSupply",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]
