"""Network table, asset resolution and unit conversion."""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction

import pytest

from agent_vault.assets import AssetResolver, format_units, to_base_units
from agent_vault.chains import (
    DEFAULT_NETWORK_ID,
    NETWORKS,
    list_network_ids,
    resolve_network,
    with_overrides,
)
from agent_vault.errors import (
    AssetLookupFailed,
    InvalidAmount,
    UnresolvableAsset,
    UnsupportedNetwork,
)
from agent_vault.integrations.uniswap import apply_slippage, slippage_fraction

from tests.conftest import FakeRPC


class TestNetworks:
    def test_default_is_base_sepolia(self):
        assert DEFAULT_NETWORK_ID == 84532
        assert resolve_network("84532").name == "Base Sepolia"

    def test_unsupported(self):
        with pytest.raises(UnsupportedNetwork) as exc_info:
            resolve_network(999)
        assert "84532" in str(exc_info.value)

    def test_capabilities(self):
        assert set(NETWORKS[84532].capabilities) == {"swap", "lending"}
        assert set(NETWORKS[100].capabilities) == {"lending"}
        assert set(NETWORKS[130].capabilities) == {"swap"}
        assert NETWORKS[130].tx_service_url is None

    def test_every_network_is_listed(self):
        assert sorted(list_network_ids()) == sorted(NETWORKS)

    def test_overrides(self):
        base = NETWORKS[84532]
        patched = with_overrides(base, rpc_url="http://localhost:8545")
        assert patched.rpc_url == "http://localhost:8545"
        assert patched.tx_service_url == base.tx_service_url
        assert base.rpc_url != patched.rpc_url


class TestUnits:
    @pytest.mark.parametrize(
        "amount, decimals, expected",
        [("1.5", 18, 15 * 10**17), ("0.000001", 6, 1), (Decimal("100"), 6, 100_000_000), ("0", 6, 0)],
    )
    def test_to_base_units(self, amount, decimals, expected):
        assert to_base_units(amount, decimals) == expected

    def test_full_width_values(self):
        assert to_base_units("115792089237316195423570985008687907853269984665640564039457.584007913129639935", 18) == 2**256 - 1

    @pytest.mark.parametrize("amount", ["abc", "-1", "0.0000001", "inf", ""])
    def test_invalid(self, amount):
        with pytest.raises(InvalidAmount):
            to_base_units(amount, 6)

    def test_format_units(self):
        assert format_units(15 * 10**17, 18) == "1.5"
        assert format_units(0, 6) == "0"
        assert format_units(100_000_000, 6) == "100"

    def test_slippage(self):
        half = slippage_fraction("0.5")
        assert half == Fraction(1, 200)
        assert apply_slippage(10_000, half) == 9_950
        assert apply_slippage(1, half) == 0
        assert apply_slippage(10**6, slippage_fraction(Decimal("0.125"))) == 998_750
        assert apply_slippage(7, slippage_fraction(0)) == 7

    @pytest.mark.parametrize("percent", ["100", "-0.1", "abc"])
    def test_slippage_out_of_range(self, percent):
        with pytest.raises(InvalidAmount):
            slippage_fraction(percent)


class TestResolver:
    def _resolver(self, rpc=None):
        profile = NETWORKS[84532]
        return AssetResolver(profile, profile.default_assets, rpc)

    def test_native_alias(self):
        for alias in ("eth", "NATIVE", "Eth"):
            found = self._resolver().lookup(alias)
            assert found.is_native
            assert found.decimals == 18
            assert found.address == "0x4200000000000000000000000000000000000006"

    def test_symbol_and_address(self):
        resolver = self._resolver()
        assert resolver.lookup("usdc").decimals == 6
        assert resolver.lookup("0x036cbd53842c5426634e7929541ec2318f3dcf7e").symbol == "USDC"
        assert resolver.lookup("DOGE") is None

    async def test_unlisted_address(self):
        rpc = FakeRPC()
        token = "0x" + "77" * 20
        rpc.decimals[token] = 9
        found = await self._resolver(rpc).resolve(token)
        assert (found.symbol, found.decimals) == ("TOKEN", 9)

    async def test_failures(self):
        with pytest.raises(UnresolvableAsset):
            await self._resolver().resolve("DOGE")
        with pytest.raises(AssetLookupFailed):
            await self._resolver(FakeRPC()).resolve("0x" + "77" * 20)
