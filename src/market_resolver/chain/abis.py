"""Minimal ABIs for the oracle and market contracts."""

ORACLE_ABI = [
    {
        "type": "function",
        "name": "commit",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "market", "type": "address"},
            {"name": "outcome", "type": "uint8"},
            {"name": "dataHash", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "finalize",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "market", "type": "address"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "pendingResolutions",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "address"}],
        "outputs": [
            {"name": "outcome", "type": "uint8"},
            {"name": "dataHash", "type": "bytes32"},
            {"name": "commitTime", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "DISPUTE_WINDOW",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

_MARKET_PARAMS = {
    "name": "",
    "type": "tuple",
    "components": [
        {"name": "title", "type": "string"},
        {"name": "description", "type": "string"},
        {
            "name": "subject",
            "type": "tuple",
            "components": [
                {"name": "kind", "type": "uint8"},
                {"name": "metricId", "type": "bytes32"},
                {"name": "token", "type": "address"},
                {"name": "valueDecimals", "type": "uint8"},
            ],
        },
        {
            "name": "predicate",
            "type": "tuple",
            "components": [
                {"name": "op", "type": "uint8"},
                {"name": "threshold", "type": "int256"},
            ],
        },
        {
            "name": "window",
            "type": "tuple",
            "components": [
                {"name": "kind", "type": "uint8"},
                {"name": "tStart", "type": "uint64"},
                {"name": "tEnd", "type": "uint64"},
            ],
        },
        {
            "name": "oracle",
            "type": "tuple",
            "components": [
                {"name": "primarySourceId", "type": "bytes32"},
                {"name": "fallbackSourceId", "type": "bytes32"},
                {"name": "roundingDecimals", "type": "uint8"},
            ],
        },
        {"name": "cutoffTime", "type": "uint64"},
        {"name": "creator", "type": "address"},
        {
            "name": "econ",
            "type": "tuple",
            "components": [
                {"name": "feeBps", "type": "uint16"},
                {"name": "creatorFeeShareBps", "type": "uint16"},
                {"name": "maxTotalPool", "type": "uint256"},
            ],
        },
        {"name": "isProtocolMarket", "type": "bool"},
    ],
}

MARKET_ABI = [
    {
        "type": "function",
        "name": "resolved",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "cancelled",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "params",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [_MARKET_PARAMS],
    },
]
