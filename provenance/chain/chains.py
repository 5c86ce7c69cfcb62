from dataclasses import dataclass


@dataclass(frozen=True)
class ChainConfig:
    """Static description of an EVM chain the registry may be deployed on."""

    chain_id: int
    name: str
    display_name: str
    rpc_url: str
    block_explorer: str
    testnet: bool


SUPPORTED_CHAINS: dict[str, ChainConfig] = {
    "ethereum": ChainConfig(1, "ethereum", "Ethereum Mainnet", "https://eth.llamarpc.com", "https://etherscan.io", False),
    "sepolia": ChainConfig(11155111, "sepolia", "Ethereum Sepolia", "https://ethereum-sepolia-rpc.publicnode.com", "https://sepolia.etherscan.io", True),
    "polygon": ChainConfig(137, "polygon", "Polygon", "https://polygon-rpc.com", "https://polygonscan.com", False),
    "polygonAmoy": ChainConfig(80002, "polygonAmoy", "Polygon Amoy", "https://rpc-amoy.polygon.technology", "https://amoy.polygonscan.com", True),
    "base": ChainConfig(8453, "base", "Base", "https://mainnet.base.org", "https://basescan.org", False),
    "baseSepolia": ChainConfig(84532, "baseSepolia", "Base Sepolia", "https://sepolia.base.org", "https://sepolia.basescan.org", True),
    "arbitrum": ChainConfig(42161, "arbitrum", "Arbitrum One", "https://arb1.arbitrum.io/rpc", "https://arbiscan.io", False),
    "arbitrumSepolia": ChainConfig(421614, "arbitrumSepolia", "Arbitrum Sepolia", "https://sepolia-rollup.arbitrum.io/rpc", "https://sepolia.arbiscan.io", True),
    "optimism": ChainConfig(10, "optimism", "Optimism", "https://mainnet.optimism.io", "https://optimistic.etherscan.io", False),
    "optimismSepolia": ChainConfig(11155420, "optimismSepolia", "Optimism Sepolia", "https://sepolia.optimism.io", "https://sepolia-optimism.etherscan.io", True),
    "localhost": ChainConfig(31337, "localhost", "Localhost", "http://127.0.0.1:8545", "", True),
}


def get_chain_by_id(chain_id: int) -> ChainConfig | None:
    for chain in SUPPORTED_CHAINS.values():
        if chain.chain_id == chain_id:
            return chain
    return None


def get_chain_by_name(name: str) -> ChainConfig | None:
    return SUPPORTED_CHAINS.get(name)


def explorer_tx_url(chain_id: int, tx_hash: str) -> str | None:
    chain = get_chain_by_id(chain_id)
    if chain is None or not chain.block_explorer:
        return None
    return f"{chain.block_explorer}/tx/{tx_hash}"


def explorer_address_url(chain_id: int, address: str) -> str | None:
    chain = get_chain_by_id(chain_id)
    if chain is None or not chain.block_explorer:
        return None
    return f"{chain.block_explorer}/address/{address}"
