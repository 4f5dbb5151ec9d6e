"""Agent key storage and the per-network RPC client.

The agent holds exactly one signing key. It can sign vault actions and send
its own transactions (vault deployment, testnet faucet mints), but it is
never enough on its own to execute a vault action.
"""
