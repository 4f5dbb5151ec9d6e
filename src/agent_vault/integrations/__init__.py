"""Call builders for third-party protocols (Uniswap V3, Aave V3, tokens)."""
