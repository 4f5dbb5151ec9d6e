"""Network profiles for the EVM networks a vault can live on.

Each profile carries the RPC endpoint, the coordination-service endpoint,
the default asset list and the optional integrations (swap, lending) that
are usable on that network.  The table is fixed configuration; endpoint
overrides from the user config are applied with :func:`with_overrides`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class AssetConfig:
    """An ERC-20 asset known on a network."""

    symbol: str
    address: str
    decimals: int


@dataclass(frozen=True)
class SwapConfig:
    """Uniswap V3 style deployment (SwapRouter02 + QuoterV2 + factory)."""

    router: str
    quoter: str
    factory: str
    default_pool_fee: int = 3000


@dataclass(frozen=True)
class LendingConfig:
    """Aave V3 style deployment."""

    pool: str
    addresses_provider: str
    faucet: str | None = None


@dataclass(frozen=True)
class NetworkProfile:
    """An EVM-compatible network and the integrations enabled on it."""

    network_id: int
    name: str
    rpc_url: str
    native_symbol: str
    wrapped_native: str
    explorer_url: str
    tx_service_url: str | None = None
    yield_index: str | None = None
    default_assets: tuple[AssetConfig, ...] = field(default_factory=tuple)
    swap: SwapConfig | None = None
    lending: LendingConfig | None = None

    @property
    def capabilities(self) -> dict[str, SwapConfig | LendingConfig]:
        """Integrations usable on this network, keyed by ``swap`` / ``lending``."""
        caps: dict[str, SwapConfig | LendingConfig] = {}
        if self.swap is not None:
            caps["swap"] = self.swap
        if self.lending is not None:
            caps["lending"] = self.lending
        return caps

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"


_WETH_OP_STACK = "0x4200000000000000000000000000000000000006"

# Uniswap V3 SwapRouter02 / QuoterV2 / factory on the canonical deployments.
_UNISWAP_CANONICAL = SwapConfig(
    router="0x68b3465833fb72A70ecDF485E0e4C7bD8665Fc45",
    quoter="0x61fFE014bA17989E743c5F6cB21bF9697530B21e",
    factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
)

_AAVE_CANONICAL = LendingConfig(
    pool="0x794a61358D6845594F94dc1DB02A252b5b4814aD",
    addresses_provider="0xa97684ead0e402dC232d5A977953DF7ECBaB3CDb",
)


NETWORKS: dict[int, NetworkProfile] = {
    # === BASE ===
    84532: NetworkProfile(
        network_id=84532,
        name="Base Sepolia",
        rpc_url="https://sepolia.base.org",
        native_symbol="ETH",
        wrapped_native=_WETH_OP_STACK,
        explorer_url="https://sepolia.basescan.org",
        tx_service_url="https://api.safe.global/tx-service/basesep/api",
        yield_index="Base",
        default_assets=(
            AssetConfig("USDC", "0x036CbD53842c5426634e7929541eC2318f3dCF7e", 6),
            AssetConfig("WETH", _WETH_OP_STACK, 18),
            AssetConfig("aaveUSDC", "0xba50Cd2A20f6DA35D788639E581bca8d0B5d4D5f", 6),
        ),
        swap=SwapConfig(
            router="0x94cC0AaC535CCDB3C01d6787D6413C739ae12bc4",
            quoter="0xC5290058841028F1614F3A6F0F5816cAd0df5E27",
            factory="0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",
        ),
        lending=LendingConfig(
            pool="0x8bAB6d1b75f19e9eD9fCe8b9BD338844fF79aE27",
            addresses_provider="0xE4C23309117Aa30342BFaae6c95c6478e0A4Ad00",
            faucet="0xD9145b5F45Ad4519c7ACcD6E0A4A82e83bB8A6Dc",
        ),
    ),
    8453: NetworkProfile(
        network_id=8453,
        name="Base",
        rpc_url="https://mainnet.base.org",
        native_symbol="ETH",
        wrapped_native=_WETH_OP_STACK,
        explorer_url="https://basescan.org",
        tx_service_url="https://api.safe.global/tx-service/base/api",
        yield_index="Base",
        default_assets=(
            AssetConfig("USDC", "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", 6),
            AssetConfig("WETH", _WETH_OP_STACK, 18),
        ),
        swap=SwapConfig(
            router="0x2626664c2603336E57B271c5C0b26F421741e481",
            quoter="0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",
            factory="0x33128a8fC17869897dcE68Ed026d694621f6FDfD",
        ),
        lending=LendingConfig(
            pool="0xA238Dd80C259a72e81d7e4664a9801593F98d1c5",
            addresses_provider="0xe20fCBdBfFC4Dd138cE8b2E6FBb6CB49777ad64D",
        ),
    ),
    # === ETHEREUM ===
    1: NetworkProfile(
        network_id=1,
        name="Ethereum",
        rpc_url="https://eth.llamarpc.com",
        native_symbol="ETH",
        wrapped_native="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        explorer_url="https://etherscan.io",
        tx_service_url="https://api.safe.global/tx-service/eth/api",
        yield_index="Ethereum",
        default_assets=(
            AssetConfig("USDC", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6),
            AssetConfig("WETH", "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", 18),
        ),
        swap=_UNISWAP_CANONICAL,
        lending=LendingConfig(
            pool="0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2",
            addresses_provider="0x2f39d218133AFaB8F2B819B1066c7E434Ad94E9e",
        ),
    ),
    # === OPTIMISM ===
    10: NetworkProfile(
        network_id=10,
        name="Optimism",
        rpc_url="https://mainnet.optimism.io",
        native_symbol="ETH",
        wrapped_native=_WETH_OP_STACK,
        explorer_url="https://optimistic.etherscan.io",
        tx_service_url="https://api.safe.global/tx-service/oeth/api",
        yield_index="Optimism",
        default_assets=(
            AssetConfig("USDC", "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85", 6),
            AssetConfig("WETH", _WETH_OP_STACK, 18),
        ),
        swap=_UNISWAP_CANONICAL,
        lending=_AAVE_CANONICAL,
    ),
    # === ARBITRUM ===
    42161: NetworkProfile(
        network_id=42161,
        name="Arbitrum One",
        rpc_url="https://arb1.arbitrum.io/rpc",
        native_symbol="ETH",
        wrapped_native="0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        explorer_url="https://arbiscan.io",
        tx_service_url="https://api.safe.global/tx-service/arb1/api",
        yield_index="Arbitrum",
        default_assets=(
            AssetConfig("USDC", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", 6),
            AssetConfig("WETH", "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", 18),
        ),
        swap=_UNISWAP_CANONICAL,
        lending=_AAVE_CANONICAL,
    ),
    # === POLYGON ===
    137: NetworkProfile(
        network_id=137,
        name="Polygon",
        rpc_url="https://polygon-rpc.com",
        native_symbol="POL",
        wrapped_native="0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
        explorer_url="https://polygonscan.com",
        tx_service_url="https://api.safe.global/tx-service/pol/api",
        yield_index="Polygon",
        default_assets=(
            AssetConfig("USDC", "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359", 6),
            AssetConfig("WETH", "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619", 18),
            AssetConfig("WPOL", "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270", 18),
        ),
        swap=_UNISWAP_CANONICAL,
        lending=_AAVE_CANONICAL,
    ),
    # === BSC ===
    56: NetworkProfile(
        network_id=56,
        name="BNB Smart Chain",
        rpc_url="https://bsc-dataseed.binance.org/",
        native_symbol="BNB",
        wrapped_native="0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
        explorer_url="https://bscscan.com",
        tx_service_url="https://api.safe.global/tx-service/bnb/api",
        yield_index="BSC",
        default_assets=(
            AssetConfig("USDC", "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", 18),
            AssetConfig("WETH", "0x2170Ed0880ac9A755fd29B2688956BD959F933F8", 18),
            AssetConfig("WBNB", "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c", 18),
        ),
        swap=SwapConfig(
            router="0xB971eF87ede563556b2ED4b1C0b0019111Dd85d2",
            quoter="0x78D78E420Da98ad378D7799bE8f4AF69033EB077",
            factory="0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
        ),
        lending=LendingConfig(
            pool="0x6807dc923806fE8Fd134338EABCA509979a7e0cB",
            addresses_provider="0xff75B6da14FfbbfD355Daf7a2731456b3562Ba6D",
        ),
    ),
    # === GNOSIS ===
    100: NetworkProfile(
        network_id=100,
        name="Gnosis Chain",
        rpc_url="https://rpc.gnosischain.com/",
        native_symbol="XDAI",
        wrapped_native="0xe91D153E0b41518A2Ce8Dd3D7944Fa863463a97d",
        explorer_url="https://gnosisscan.io",
        tx_service_url="https://api.safe.global/tx-service/gno/api",
        yield_index="Gnosis",
        default_assets=(
            AssetConfig("USDC", "0xDDAfbb505ad214D7b80b1f830fcCc89B60fb7A83", 6),
            AssetConfig("WETH", "0x6A023CCd1ff6F2045C3309768eAd9E68F978f6e1", 18),
            AssetConfig("WXDAI", "0xe91D153E0b41518A2Ce8Dd3D7944Fa863463a97d", 18),
        ),
        lending=LendingConfig(
            pool="0xb50201558B00496A145fE76f7424749556E326D8",
            addresses_provider="0x36616cf17557639614c1cdDb356b1B83fc0B2132",
        ),
    ),
    # === AVALANCHE ===
    43114: NetworkProfile(
        network_id=43114,
        name="Avalanche C-Chain",
        rpc_url="https://api.avax.network/ext/bc/C/rpc",
        native_symbol="AVAX",
        wrapped_native="0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7",
        explorer_url="https://snowtrace.io",
        tx_service_url="https://api.safe.global/tx-service/avax/api",
        yield_index="Avalanche",
        default_assets=(
            AssetConfig("USDC", "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E", 6),
            AssetConfig("WETH", "0x49D5c2BdFfac6CE2BFdB6640F4F80f226bc10bAB", 18),
            AssetConfig("WAVAX", "0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7", 18),
        ),
        lending=_AAVE_CANONICAL,
    ),
    # === UNICHAIN ===
    130: NetworkProfile(
        network_id=130,
        name="Unichain",
        rpc_url="https://mainnet.unichain.org",
        native_symbol="ETH",
        wrapped_native=_WETH_OP_STACK,
        explorer_url="https://uniscan.xyz",
        yield_index="Unichain",
        default_assets=(AssetConfig("WETH", _WETH_OP_STACK, 18),),
        swap=SwapConfig(
            router="0x73855d06DE49d0fe4A9c42636Ba96c62da12FF9C",
            quoter="0x385A5cf5F83e99f7BB2852b6A19C3538b3bA7345",
            factory="0x1F98400000000000000000000000000000000003",
        ),
    ),
}

DEFAULT_NETWORK_ID = 84532


def resolve_network(network_id: int) -> NetworkProfile:
    """Get the profile for *network_id*. Raises ``UnsupportedNetwork`` if absent."""
    from agent_vault.errors import UnsupportedNetwork

    try:
        return NETWORKS[int(network_id)]
    except (KeyError, TypeError, ValueError):
        raise UnsupportedNetwork(network_id, list_network_ids()) from None


def list_network_ids() -> list[int]:
    """Return the ids of all supported networks."""
    return list(NETWORKS.keys())


def with_overrides(
    profile: NetworkProfile,
    rpc_url: str | None = None,
    tx_service_url: str | None = None,
) -> NetworkProfile:
    """Return a copy of *profile* with user-configured endpoints applied."""
    changes: dict[str, str] = {}
    if rpc_url:
        changes["rpc_url"] = rpc_url
    if tx_service_url:
        changes["tx_service_url"] = tx_service_url
    return replace(profile, **changes) if changes else profile
