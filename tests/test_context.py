import pytest

from zkpret_mcp.context import NETWORK_PROFILES, Network, NetworkContext, WalletHandle
from zkpret_mcp.errors import ErrorKind, NetworkMismatchError, UnknownNetworkError
from conftest import WALLET_ADDRESS


def _wallet(network=Network.TESTNET):
    return WalletHandle(address=WALLET_ADDRESS, public_key="pub", network=network, key_ref="secret-ref")


def test_default_network_is_testnet():
    context = NetworkContext()
    snapshot = context.current()
    assert snapshot.network is Network.TESTNET
    assert snapshot.wallet is None
    assert snapshot.profile.network_id == "mina:testnet"


def test_network_parse_accepts_case_and_whitespace():
    assert Network.parse(" DevNet ") is Network.DEVNET
    assert Network.parse(Network.MAINNET) is Network.MAINNET


@pytest.mark.parametrize("value", ["moonnet", "", None, 3])
def test_network_parse_rejects_unknown(value):
    with pytest.raises(UnknownNetworkError) as excinfo:
        Network.parse(value)
    assert excinfo.value.kind is ErrorKind.UNKNOWN_NETWORK


def test_switch_network_replaces_state():
    context = NetworkContext("testnet")
    snapshot = context.switch_network("devnet")
    assert snapshot.network is Network.DEVNET
    assert context.current() is snapshot


def test_unknown_switch_leaves_state_untouched():
    context = NetworkContext("testnet")
    context.attach_wallet(_wallet())
    before = context.current()
    with pytest.raises(UnknownNetworkError):
        context.switch_network("moonnet")
    assert context.current() is before
    assert context.current().wallet is not None


def test_switch_clears_wallet_bound_to_other_network():
    context = NetworkContext("testnet")
    context.attach_wallet(_wallet(Network.TESTNET))
    after = context.switch_network("mainnet")
    assert after.network is Network.MAINNET
    assert after.wallet is None


def test_switch_to_same_network_keeps_wallet():
    context = NetworkContext("testnet")
    context.attach_wallet(_wallet(Network.TESTNET))
    after = context.switch_network("testnet")
    assert after.wallet is not None
    assert after.wallet.address == WALLET_ADDRESS


def test_attach_wallet_requires_matching_network():
    context = NetworkContext("devnet")
    with pytest.raises(NetworkMismatchError) as excinfo:
        context.attach_wallet(_wallet(Network.TESTNET))
    assert excinfo.value.kind is ErrorKind.NETWORK_MISMATCH
    assert context.current().wallet is None


def test_detach_wallet():
    context = NetworkContext("testnet")
    context.attach_wallet(_wallet())
    assert context.detach_wallet().wallet is None


def test_snapshot_is_immutable_after_switch():
    context = NetworkContext("testnet")
    taken = context.current()
    context.switch_network("local")
    assert taken.network is Network.TESTNET
    assert context.current().network is Network.LOCAL


def test_wallet_to_dict_never_exposes_key_ref():
    described = _wallet().to_dict()
    assert described == {"address": WALLET_ADDRESS, "publicKey": "pub", "network": "testnet"}


def test_profiles_cover_every_network():
    assert set(NETWORK_PROFILES) == set(Network)
    assert NETWORK_PROFILES[Network.MAINNET].faucet_url is None
    described = NETWORK_PROFILES[Network.DEVNET].to_dict()
    assert described["id"] == "devnet"
    assert described["graphqlEndpoint"].endswith("/graphql")
