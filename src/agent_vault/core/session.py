"""Per-process wiring of store, key, network clients and the two engines."""

from __future__ import annotations

import logging
from typing import Optional

from web3 import Web3

from agent_vault.chains import DEFAULT_NETWORK_ID, NetworkProfile, resolve_network, with_overrides
from agent_vault.config import AppConfig
from agent_vault.core.onboarding import OnboardingStateMachine
from agent_vault.core.orchestrator import TransactionOrchestrator
from agent_vault.errors import IntegrationUnavailable, InvalidAddress, UnknownVault
from agent_vault.integrations.yields import YieldService
from agent_vault.storage.database import Database, get_database
from agent_vault.storage.models import VaultRecord
from agent_vault.storage.store import StateStore
from agent_vault.vault.safe import SafeVaultSDK
from agent_vault.vault.sdk import BaseVaultSDK
from agent_vault.vault.tx_service import BaseCoordinationService, SafeTxServiceClient
from agent_vault.wallet.keystore import AgentKeyStore
from agent_vault.wallet.provider import ChainRPCClient

logger = logging.getLogger("agent_vault.core.session")


class _UnavailableCoordinator(BaseCoordinationService):
    """Stands in on networks without a coordination service endpoint."""

    def __init__(self, network_name: str) -> None:
        self.network_name = network_name

    def _fail(self):
        raise IntegrationUnavailable("The coordination service", self.network_name)

    async def propose(self, vault, action, action_hash, sender, signature, origin="agent-vault"):
        self._fail()

    async def get_transaction(self, action_hash):
        self._fail()

    async def get_pending_transactions(self, vault):
        self._fail()

    async def confirm(self, action_hash, signature):
        self._fail()


class VaultSession:
    """Everything one process needs, built once and passed by reference."""

    def __init__(
        self,
        config: AppConfig,
        db: Database,
        store: StateStore,
        profile: NetworkProfile,
        keystore: AgentKeyStore,
        rpc: ChainRPCClient,
        sdk: BaseVaultSDK,
        coordinator: BaseCoordinationService,
    ) -> None:
        self.config = config
        self.db = db
        self.store = store
        self.profile = profile
        self.keystore = keystore
        self.rpc = rpc
        self.sdk = sdk
        self.coordinator = coordinator
        self.onboarding = OnboardingStateMachine(
            store, keystore, rpc, sdk, profile, min_deploy_native=config.min_deploy_native
        )
        self.orchestrator = TransactionOrchestrator(
            store,
            keystore,
            rpc,
            sdk,
            coordinator,
            profile,
            slippage_percent=config.slippage_percent,
            yields=YieldService(
                api_url=config.yields.api_url,
                timeout_seconds=config.yields.timeout_seconds,
                top_n=config.yields.top_n,
            ),
        )

    @classmethod
    async def open(cls, config: AppConfig, network_id: Optional[int] = None) -> VaultSession:
        """Open the store and build the clients for the selected network.

        The network is *network_id*, else the configured one, else the
        persisted active network, else Base Sepolia.
        """
        home = config.home
        db = get_database(home)
        await db.connect()
        store = StateStore(db)
        await store.load()

        chosen = network_id or config.network_id or store.active_network_id or DEFAULT_NETWORK_ID
        profile = with_overrides(
            resolve_network(chosen),
            rpc_url=config.rpc.url_overrides.get(chosen),
            tx_service_url=config.tx_service.url_overrides.get(chosen),
        )

        keystore = AgentKeyStore(
            home / "wallet",
            config.keystore.password,
            kdf_iterations=config.keystore.kdf_iterations,
        )
        rpc = ChainRPCClient(
            profile,
            timeout_seconds=config.rpc.timeout_seconds,
            receipt_timeout_seconds=config.rpc.receipt_timeout_seconds,
        )
        sdk = SafeVaultSDK(rpc, keystore, profile)
        if profile.tx_service_url:
            coordinator: BaseCoordinationService = SafeTxServiceClient(
                profile.tx_service_url,
                api_key=config.tx_service.api_key,
                timeout_seconds=config.tx_service.timeout_seconds,
            )
        else:
            coordinator = _UnavailableCoordinator(profile.name)

        logger.debug(f"Session opened on {profile.name} ({profile.network_id}) at {home}")
        return cls(config, db, store, profile, keystore, rpc, sdk, coordinator)

    async def close(self) -> None:
        await self.db.close()

    async def __aenter__(self) -> VaultSession:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Vault registry
    # ------------------------------------------------------------------

    def list_vaults(self) -> list[VaultRecord]:
        return self.store.vaults()

    async def select_vault(self, address: str) -> VaultRecord:
        """Make a registered vault active (switching network if needed).

        The new network takes effect for the next session.
        """
        if not Web3.is_address(address.strip()):
            raise InvalidAddress(address)
        for record in self.store.vaults():
            if record.address.lower() == address.strip().lower():
                await self.store.set_active_vault(record.address, record.network_id)
                logger.info(f"Active vault is now {record.address} on {record.network_name}")
                return record
        raise UnknownVault(address)
