REGISTRY_ABI: list[dict[str, object]] = [
    {
        "type": "function",
        "name": "entries",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "bytes32"}],
        "outputs": [
            {"name": "creator", "type": "address"},
            {"name": "contentHash", "type": "bytes32"},
            {"name": "manifestURI", "type": "string"},
            {"name": "timestamp", "type": "uint64"},
        ],
    },
    {
        "type": "function",
        "name": "platformKeyToHash",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
    {
        "type": "function",
        "name": "register",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "contentHash", "type": "bytes32"},
            {"name": "manifestURI", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "bindPlatform",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "contentHash", "type": "bytes32"},
            {"name": "platform", "type": "string"},
            {"name": "platformId", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "ContentRegistered",
        "anonymous": False,
        "inputs": [
            {"name": "contentHash", "type": "bytes32", "indexed": True},
            {"name": "creator", "type": "address", "indexed": True},
            {"name": "manifestURI", "type": "string", "indexed": False},
            {"name": "timestamp", "type": "uint64", "indexed": False},
        ],
    },
]

CONTENT_REGISTERED_SIGNATURE = "ContentRegistered(bytes32,address,string,uint64)"
