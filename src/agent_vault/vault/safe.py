"""Safe v1.4.1 adapter for :class:`~agent_vault.vault.sdk.BaseVaultSDK`.

Implements the parts of the Safe protocol the agent needs directly on top of
``web3`` and ``eth-abi``:

* CREATE2 address prediction and deployment through the proxy factory;
* single calls as ``CALL`` actions, several calls as a ``DELEGATECALL`` into
  MultiSendCallOnly;
* EIP-712 ``SafeTx`` hashing and raw-hash ECDSA signing;
* ``execTransaction`` with concatenated owner signatures.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from eth_abi import encode
from eth_abi.packed import encode_packed
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError

from agent_vault.chains import NetworkProfile
from agent_vault.errors import ExecutionReverted, InvalidAmount, RemoteFault
from agent_vault.integrations.abis import (
    MULTI_SEND_ABI,
    SAFE_ABI,
    SAFE_PROXY_FACTORY_ABI,
    ZERO_ADDRESS,
    encode_call,
)
from agent_vault.vault.sdk import (
    OPERATION_CALL,
    OPERATION_DELEGATECALL,
    BaseVaultSDK,
    DeployResult,
    OwnerSignature,
    VaultAction,
    VaultCall,
)

if TYPE_CHECKING:
    from agent_vault.wallet.keystore import AgentKeyStore
    from agent_vault.wallet.provider import ChainRPCClient

logger = logging.getLogger("agent_vault.vault.safe")

# Canonical Safe v1.4.1 deployments (same address on every supported network).
SAFE_SINGLETON_L2 = "0x29fcB43b46531BcA003ddC8FCB67FFE91900C762"
SAFE_PROXY_FACTORY = "0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67"
SAFE_FALLBACK_HANDLER = "0xfd0732Dc9E303f09fCEf3a7388Ad10A83459Ec99"
MULTI_SEND_CALL_ONLY = "0x9641d764fc13c8B624c04430C7356C1C7C8102e2"

DOMAIN_TYPEHASH = Web3.keccak(text="EIP712Domain(uint256 chainId,address verifyingContract)")
SAFE_TX_TYPEHASH = Web3.keccak(
    text=(
        "SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,"
        "uint256 baseGas,uint256 gasPrice,address gasToken,address refundReceiver,"
        "uint256 nonce)"
    )
)


def domain_separator(chain_id: int, vault: str) -> bytes:
    return Web3.keccak(
        encode(
            ["bytes32", "uint256", "address"],
            [DOMAIN_TYPEHASH, chain_id, Web3.to_checksum_address(vault)],
        )
    )


def safe_tx_hash(chain_id: int, vault: str, action: VaultAction) -> bytes:
    """EIP-712 digest of *action* for the vault at *vault* on *chain_id*."""
    struct_hash = Web3.keccak(
        encode(
            [
                "bytes32", "address", "uint256", "bytes32", "uint8", "uint256",
                "uint256", "uint256", "address", "address", "uint256",
            ],
            [
                SAFE_TX_TYPEHASH,
                Web3.to_checksum_address(action.to),
                action.value,
                Web3.keccak(HexBytes(action.data)),
                action.operation,
                action.safe_tx_gas,
                action.base_gas,
                action.gas_price,
                Web3.to_checksum_address(action.gas_token),
                Web3.to_checksum_address(action.refund_receiver),
                action.nonce,
            ],
        )
    )
    return Web3.keccak(b"\x19\x01" + domain_separator(chain_id, vault) + struct_hash)


def encode_multi_send(calls: list[VaultCall]) -> str:
    """Pack *calls* into MultiSendCallOnly ``multiSend(bytes)`` calldata."""
    packed = b""
    for call in calls:
        data = bytes(HexBytes(call.data))
        packed += encode_packed(
            ["uint8", "address", "uint256", "uint256", "bytes"],
            [OPERATION_CALL, Web3.to_checksum_address(call.to), call.value, len(data), data],
        )
    return encode_call(MULTI_SEND_ABI, "multiSend", [packed])


def setup_initializer(owners: list[str], threshold: int) -> bytes:
    """``Safe.setup`` calldata used as the proxy initializer."""
    data = encode_call(
        SAFE_ABI,
        "setup",
        [
            [Web3.to_checksum_address(o) for o in owners],
            threshold,
            ZERO_ADDRESS,
            b"",
            SAFE_FALLBACK_HANDLER,
            ZERO_ADDRESS,
            0,
            ZERO_ADDRESS,
        ],
    )
    return bytes(HexBytes(data))


def create2_address(proxy_creation_code: bytes, initializer: bytes, salt_nonce: int) -> str:
    salt = Web3.keccak(Web3.keccak(initializer) + encode(["uint256"], [salt_nonce]))
    init_code = proxy_creation_code + encode(["uint256"], [int(SAFE_SINGLETON_L2, 16)])
    digest = Web3.keccak(
        b"\xff" + bytes(HexBytes(SAFE_PROXY_FACTORY)) + salt + Web3.keccak(init_code)
    )
    return Web3.to_checksum_address(digest[12:])


class SafeVaultSDK(BaseVaultSDK):
    """Safe v1.4.1 vault adapter for one network."""

    def __init__(
        self,
        rpc: ChainRPCClient,
        keystore: AgentKeyStore,
        profile: NetworkProfile,
    ) -> None:
        self.rpc = rpc
        self.keystore = keystore
        self.profile = profile
        self._proxy_code: bytes | None = None

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    async def _proxy_creation_code(self) -> bytes:
        if self._proxy_code is None:
            code = await self.rpc.call(SAFE_PROXY_FACTORY, SAFE_PROXY_FACTORY_ABI, "proxyCreationCode")
            self._proxy_code = bytes(code)
        return self._proxy_code

    async def predict_address(self, owners: list[str], threshold: int, salt_nonce: int = 0) -> str:
        initializer = setup_initializer(owners, threshold)
        return create2_address(await self._proxy_creation_code(), initializer, salt_nonce)

    async def deploy(self, owners: list[str], threshold: int, salt_nonce: int = 0) -> DeployResult:
        """Deploy through the proxy factory.

        If a contract already sits at the predicted address (an earlier
        deployment whose result was never recorded), it is returned as is.
        """
        predicted = await self.predict_address(owners, threshold, salt_nonce)
        if await self.rpc.is_contract(predicted):
            logger.warning(f"Vault already deployed at {predicted}, reusing it")
            return DeployResult(address=predicted, tx_hash="", owners=owners, threshold=threshold)

        data = encode_call(
            SAFE_PROXY_FACTORY_ABI,
            "createProxyWithNonce",
            [SAFE_SINGLETON_L2, setup_initializer(owners, threshold), salt_nonce],
        )
        try:
            tx_hash = await self.rpc.send_transaction(
                self.keystore.account, SAFE_PROXY_FACTORY, 0, data
            )
        except ContractLogicError as exc:
            raise ExecutionReverted(f"Vault deployment reverted: {exc}") from exc
        await self.rpc.wait_for_receipt(tx_hash)

        if not await self.rpc.is_contract(predicted):
            raise RemoteFault(
                f"Deployment {tx_hash} mined but no vault found at {predicted}"
            )
        logger.info(f"Deployed vault {predicted} on {self.profile.name} ({tx_hash})")
        return DeployResult(address=predicted, tx_hash=tx_hash, owners=owners, threshold=threshold)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def build_action(self, vault: str, calls: list[VaultCall], nonce: int) -> VaultAction:
        if not calls:
            raise InvalidAmount("An action needs at least one call")
        if len(calls) == 1:
            call = calls[0]
            return VaultAction(
                to=Web3.to_checksum_address(call.to),
                value=call.value,
                data=call.data,
                nonce=nonce,
                calls=tuple(calls),
            )
        return VaultAction(
            to=MULTI_SEND_CALL_ONLY,
            value=0,
            data=encode_multi_send(calls),
            nonce=nonce,
            operation=OPERATION_DELEGATECALL,
            calls=tuple(calls),
        )

    async def hash_action(self, vault: str, action: VaultAction) -> str:
        return Web3.to_hex(safe_tx_hash(self.profile.network_id, vault, action))

    def sign_hash(self, action_hash: str) -> str:
        return self.keystore.sign_hash(bytes(HexBytes(action_hash)))

    async def execute_action(
        self, vault: str, action: VaultAction, signatures: list[OwnerSignature]
    ) -> str:
        packed = b"".join(bytes(HexBytes(s.signature)) for s in signatures)
        data = encode_call(
            SAFE_ABI,
            "execTransaction",
            [
                Web3.to_checksum_address(action.to),
                action.value,
                bytes(HexBytes(action.data)),
                action.operation,
                action.safe_tx_gas,
                action.base_gas,
                action.gas_price,
                Web3.to_checksum_address(action.gas_token),
                Web3.to_checksum_address(action.refund_receiver),
                packed,
            ],
        )
        try:
            tx_hash = await self.rpc.send_transaction(self.keystore.account, vault, 0, data)
        except ContractLogicError as exc:
            raise ExecutionReverted(f"Vault execution reverted: {exc}") from exc
        await self.rpc.wait_for_receipt(tx_hash)
        return tx_hash

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_owners(self, vault: str) -> list[str]:
        return list(await self.rpc.call(vault, SAFE_ABI, "getOwners"))

    async def get_threshold(self, vault: str) -> int:
        return int(await self.rpc.call(vault, SAFE_ABI, "getThreshold"))

    async def get_nonce(self, vault: str) -> int:
        return int(await self.rpc.call(vault, SAFE_ABI, "nonce"))
