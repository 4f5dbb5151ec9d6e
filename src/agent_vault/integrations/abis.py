"""Minimal contract ABIs and calldata helpers."""

from __future__ import annotations

from typing import Any

from web3 import Web3

MAX_UINT256 = 2**256 - 1
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_W3 = Web3()


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[str] | None = None,
        mutability: str = "nonpayable") -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in (outputs or [])],
    }


def _tuple(name: str, components: list[tuple[str, str]]) -> dict:
    return {
        "name": name,
        "type": "tuple",
        "components": [{"name": n, "type": t} for n, t in components],
    }


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

ERC20_ABI = [
    _fn("balanceOf", [("account", "address")], ["uint256"], "view"),
    _fn("decimals", [], ["uint8"], "view"),
    _fn("symbol", [], ["string"], "view"),
    _fn("allowance", [("owner", "address"), ("spender", "address")], ["uint256"], "view"),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], ["bool"]),
    _fn("transfer", [("to", "address"), ("amount", "uint256")], ["bool"]),
]

WETH_ABI = [
    _fn("deposit", [], [], "payable"),
    _fn("withdraw", [("wad", "uint256")]),
]

# ---------------------------------------------------------------------------
# Uniswap V3 (SwapRouter02, QuoterV2, factory)
# ---------------------------------------------------------------------------

_QUOTE_PARAMS = [
    ("tokenIn", "address"),
    ("tokenOut", "address"),
    ("amountIn", "uint256"),
    ("fee", "uint24"),
    ("sqrtPriceLimitX96", "uint160"),
]

QUOTER_ABI = [
    {
        "type": "function",
        "name": "quoteExactInputSingle",
        "stateMutability": "nonpayable",
        "inputs": [_tuple("params", _QUOTE_PARAMS)],
        "outputs": [
            {"name": "amountOut", "type": "uint256"},
            {"name": "sqrtPriceX96After", "type": "uint160"},
            {"name": "initializedTicksCrossed", "type": "uint32"},
            {"name": "gasEstimate", "type": "uint256"},
        ],
    }
]

UNISWAP_FACTORY_ABI = [
    _fn("getPool", [("tokenA", "address"), ("tokenB", "address"), ("fee", "uint24")],
        ["address"], "view"),
]

_SWAP_PARAMS = [
    ("tokenIn", "address"),
    ("tokenOut", "address"),
    ("fee", "uint24"),
    ("recipient", "address"),
    ("amountIn", "uint256"),
    ("amountOutMinimum", "uint256"),
    ("sqrtPriceLimitX96", "uint160"),
]

SWAP_ROUTER_ABI = [
    {
        "type": "function",
        "name": "exactInputSingle",
        "stateMutability": "payable",
        "inputs": [_tuple("params", _SWAP_PARAMS)],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    }
]

# ---------------------------------------------------------------------------
# Aave V3
# ---------------------------------------------------------------------------

AAVE_POOL_ABI = [
    _fn("supply", [("asset", "address"), ("amount", "uint256"),
                   ("onBehalfOf", "address"), ("referralCode", "uint16")]),
    _fn("withdraw", [("asset", "address"), ("amount", "uint256"), ("to", "address")],
        ["uint256"]),
]

AAVE_FAUCET_ABI = [
    _fn("mint", [("token", "address"), ("to", "address"), ("amount", "uint256")],
        ["uint256"]),
]

# ---------------------------------------------------------------------------
# Safe v1.4.1
# ---------------------------------------------------------------------------

SAFE_ABI = [
    _fn("setup", [("_owners", "address[]"), ("_threshold", "uint256"), ("to", "address"),
                  ("data", "bytes"), ("fallbackHandler", "address"),
                  ("paymentToken", "address"), ("payment", "uint256"),
                  ("paymentReceiver", "address")]),
    _fn("execTransaction", [("to", "address"), ("value", "uint256"), ("data", "bytes"),
                            ("operation", "uint8"), ("safeTxGas", "uint256"),
                            ("baseGas", "uint256"), ("gasPrice", "uint256"),
                            ("gasToken", "address"), ("refundReceiver", "address"),
                            ("signatures", "bytes")], ["bool"], "payable"),
    _fn("getOwners", [], ["address[]"], "view"),
    _fn("getThreshold", [], ["uint256"], "view"),
    _fn("nonce", [], ["uint256"], "view"),
]

SAFE_PROXY_FACTORY_ABI = [
    _fn("createProxyWithNonce", [("_singleton", "address"), ("initializer", "bytes"),
                                 ("saltNonce", "uint256")], ["address"]),
    _fn("proxyCreationCode", [], ["bytes"], "pure"),
]

MULTI_SEND_ABI = [
    _fn("multiSend", [("transactions", "bytes")], [], "payable"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def encode_call(abi: list[dict], fn_name: str, args: list[Any] | tuple = ()) -> str:
    """ABI-encode a call to *fn_name* and return ``0x``-prefixed calldata."""
    contract = _W3.eth.contract(abi=abi)
    return contract.encode_abi(fn_name, args=list(args))


def encode_approve(spender: str, amount: int) -> str:
    return encode_call(ERC20_ABI, "approve", [Web3.to_checksum_address(spender), amount])


def encode_transfer(to: str, amount: int) -> str:
    return encode_call(ERC20_ABI, "transfer", [Web3.to_checksum_address(to), amount])
