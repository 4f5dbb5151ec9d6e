"""Encrypted agent-key storage using eth-account."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from agent_vault.errors import IdentityCorrupt, NoAgentIdentity

logger = logging.getLogger("agent_vault.wallet.keystore")

DEFAULT_KDF_ITERATIONS = 262144


class AgentKeyStore:
    """The agent's single signing key, kept as a v3 keystore file.

    Parameters
    ----------
    wallet_dir:
        Directory where ``keystore.json`` lives.
    password:
        Password used to encrypt and decrypt the key.
    kdf_iterations:
        PBKDF2 iteration count for newly created keystores.
    """

    def __init__(
        self,
        wallet_dir: Path,
        password: str,
        kdf_iterations: int = DEFAULT_KDF_ITERATIONS,
    ) -> None:
        self.wallet_dir = Path(wallet_dir)
        self._password = password
        self._kdf_iterations = kdf_iterations
        self._account: Optional[LocalAccount] = None

    @property
    def path(self) -> Path:
        return self.wallet_dir / "keystore.json"

    def exists(self) -> bool:
        return self.path.exists()

    @property
    def loaded(self) -> bool:
        return self._account is not None

    def create(self) -> str:
        """Generate a new keypair, write it encrypted and load it.

        Returns
        -------
        str
            The checksummed address of the new key.

        Raises
        ------
        FileExistsError
            If a keystore already exists.
        """
        if self.exists():
            raise FileExistsError(
                f"Agent key already exists at {self.path}. "
                "Delete it first if you want to create a new one."
            )

        acct = Account.create()
        encrypted = Account.encrypt(
            acct.key, self._password, kdf="pbkdf2", iterations=self._kdf_iterations
        )
        self.wallet_dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(encrypted, indent=2), encoding="utf-8")
        self.path.chmod(0o600)

        self._account = acct
        logger.info(f"Created agent key {acct.address}")
        return acct.address

    def read_address(self) -> Optional[str]:
        """Read the stored address without decrypting. ``None`` if no keystore."""
        if not self.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            raw_address = data["address"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise IdentityCorrupt(f"Keystore at {self.path} is unreadable: {exc}") from exc
        if not raw_address.startswith("0x"):
            raw_address = "0x" + raw_address
        if not Web3.is_address(raw_address):
            raise IdentityCorrupt(f"Keystore at {self.path} holds an invalid address")
        return Web3.to_checksum_address(raw_address)

    def load(self) -> str:
        """Decrypt the stored key and check it against the stored address.

        Raises
        ------
        NoAgentIdentity
            If no keystore exists.
        IdentityCorrupt
            If the key cannot be decrypted or derives a different address.
        """
        stored = self.read_address()
        if stored is None:
            raise NoAgentIdentity()

        data = json.loads(self.path.read_text(encoding="utf-8"))
        try:
            key = Account.decrypt(data, self._password)
        except ValueError as exc:
            raise IdentityCorrupt(f"Failed to decrypt agent key: {exc}") from exc

        acct = Account.from_key(key)
        if acct.address.lower() != stored.lower():
            raise IdentityCorrupt(
                f"Agent key derives {acct.address} but the keystore records {stored}"
            )
        self._account = acct
        return acct.address

    @property
    def account(self) -> LocalAccount:
        if self._account is None:
            raise NoAgentIdentity()
        return self._account

    @property
    def address(self) -> str:
        return self.account.address

    def sign_hash(self, digest: bytes) -> str:
        """Sign a 32-byte digest as-is. Returns 65-byte ``r||s||v`` hex."""
        signed = self.account.unsafe_sign_hash(digest)
        return "0x" + bytes(signed.signature).hex()
