"""Exception hierarchy for agent-vault.

Faults fall into four families:

* validation faults -- bad input, rejected before any I/O, never retried;
* precondition faults -- a prior step (key creation, deployment, ...) is
  missing and the caller has to run it first;
* business faults -- the request is well formed but cannot be honoured
  (no liquidity pool, ...);
* remote faults -- the coordination service, the chain or an RPC endpoint
  failed.  Local state is left at its last committed value so the same call
  can simply be repeated.
"""

from __future__ import annotations


class VaultError(Exception):
    """Root of every error raised by agent-vault."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationFault(VaultError, ValueError):
    """Input was rejected before any I/O happened."""


class InvalidAddress(ValidationFault):
    def __init__(self, address: str) -> None:
        super().__init__(f"Invalid address format: {address}")
        self.address = address


class SelfOwnershipRejected(ValidationFault):
    def __init__(self, address: str) -> None:
        super().__init__(
            f"Owner address {address} is the agent address. "
            "The agent key is always an owner; add a human signer instead."
        )
        self.address = address


class UnsupportedNetwork(ValidationFault):
    def __init__(self, network_id: int, available: list[int] | None = None) -> None:
        msg = f"Network {network_id} is not supported"
        if available:
            msg += f". Available: {available}"
        super().__init__(msg)
        self.network_id = network_id


class UnresolvableAsset(ValidationFault):
    def __init__(self, asset: str) -> None:
        super().__init__(
            f"Asset '{asset}' is not a known symbol on this network and is not a valid address."
        )
        self.asset = asset


class UnknownVault(ValidationFault):
    def __init__(self, address: str) -> None:
        super().__init__(f"No vault registered at {address}")
        self.address = address


class InvalidAmount(ValidationFault):
    pass


class InvalidThreshold(ValidationFault):
    pass


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


class PreconditionFault(VaultError, RuntimeError):
    """A required earlier step has not been completed."""


class NoAgentIdentity(PreconditionFault):
    def __init__(self) -> None:
        super().__init__("No agent key loaded. Run 'agent-vault wizard start' first.")


class VaultNotDeployed(PreconditionFault):
    def __init__(self, network_name: str) -> None:
        super().__init__(
            f"No vault deployed on {network_name} yet. Complete the setup wizard first."
        )


class NotReady(PreconditionFault):
    pass


class NoOwners(PreconditionFault):
    def __init__(self) -> None:
        super().__init__("No owner addresses set. Add at least one human owner first.")


class IntegrationUnavailable(PreconditionFault):
    def __init__(self, integration: str, network_name: str) -> None:
        super().__init__(f"{integration} is not available on {network_name}.")
        self.integration = integration


# ---------------------------------------------------------------------------
# Business
# ---------------------------------------------------------------------------


class BusinessFault(VaultError):
    """The request is valid but cannot be carried out as asked."""


class NoPoolExists(BusinessFault):
    def __init__(self, symbol_in: str, symbol_out: str, fee: int) -> None:
        super().__init__(
            f"No liquidity pool exists for {symbol_in}/{symbol_out} with fee {fee / 10000}%"
        )
        self.fee = fee


class QuoteFailed(BusinessFault):
    pass


# ---------------------------------------------------------------------------
# Identity / persistence
# ---------------------------------------------------------------------------


class IdentityCorrupt(VaultError):
    """The stored agent key does not derive the stored address."""


class StateConflict(VaultError):
    """Another writer changed a stored document since it was loaded."""


# ---------------------------------------------------------------------------
# Remote
# ---------------------------------------------------------------------------


class RemoteFault(VaultError):
    """A remote dependency (RPC, chain, coordination service) failed."""


class CoordinationServiceError(RemoteFault):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExecutionReverted(RemoteFault):
    def __init__(self, message: str, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class AssetLookupFailed(RemoteFault):
    pass


class ActionHashMismatch(RemoteFault):
    pass
