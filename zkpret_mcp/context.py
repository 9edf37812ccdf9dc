"""
Shared network/wallet context.

``NetworkContext`` owns the one "current network" and the optional active
wallet. State is held as a single frozen ``ContextSnapshot`` that is replaced
as a whole on every mutation, so readers always see either the old or the new
state. Handlers receive the snapshot taken at dispatch time and keep seeing it
even if the network is switched while they run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from zkpret_mcp.config import DEFAULT_NETWORK
from zkpret_mcp.errors import NetworkMismatchError, UnknownNetworkError

logger = logging.getLogger(__name__)


class Network(str, Enum):
    LOCAL = "local"
    DEVNET = "devnet"
    TESTNET = "testnet"
    MAINNET = "mainnet"

    @classmethod
    def parse(cls, value: object) -> "Network":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnknownNetworkError(
            f"Unknown network {value!r}; expected one of: {', '.join(n.value for n in cls)}"
        )


@dataclass(frozen=True, slots=True)
class NetworkProfile:
    network: Network
    network_id: str
    name: str
    graphql_endpoint: str
    archive_endpoint: Optional[str] = None
    explorer_url: Optional[str] = None
    faucet_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.network.value,
            "networkId": self.network_id,
            "name": self.name,
            "graphqlEndpoint": self.graphql_endpoint,
            "archiveEndpoint": self.archive_endpoint,
            "explorerUrl": self.explorer_url,
            "faucetUrl": self.faucet_url,
        }


NETWORK_PROFILES: Dict[Network, NetworkProfile] = {
    Network.LOCAL: NetworkProfile(
        network=Network.LOCAL,
        network_id="mina:local",
        name="Local Network",
        graphql_endpoint="http://localhost:3085/graphql",
        archive_endpoint="http://localhost:3086",
        explorer_url="http://localhost:3000",
        faucet_url="http://localhost:3085/faucet",
    ),
    Network.DEVNET: NetworkProfile(
        network=Network.DEVNET,
        network_id="mina:devnet",
        name="Devnet",
        graphql_endpoint="https://api.minascan.io/node/devnet/v1/graphql",
        archive_endpoint="https://api.minascan.io/archive/devnet/v1/graphql",
        explorer_url="https://devnet.minascan.io",
        faucet_url="https://faucet.minaprotocol.com",
    ),
    Network.TESTNET: NetworkProfile(
        network=Network.TESTNET,
        network_id="mina:testnet",
        name="Testnet",
        graphql_endpoint="https://api.minascan.io/node/testnet/v1/graphql",
        archive_endpoint="https://api.minascan.io/archive/testnet/v1/graphql",
        explorer_url="https://testnet.minascan.io",
        faucet_url="https://faucet.minaprotocol.com",
    ),
    Network.MAINNET: NetworkProfile(
        network=Network.MAINNET,
        network_id="mina:mainnet",
        name="Mainnet",
        graphql_endpoint="https://api.minascan.io/node/mainnet/v1/graphql",
        archive_endpoint="https://api.minascan.io/archive/mainnet/v1/graphql",
        explorer_url="https://minascan.io",
    ),
}


@dataclass(frozen=True, slots=True)
class WalletHandle:
    """Public wallet identity plus an opaque reference to its key material."""

    address: str
    public_key: str
    network: Network
    key_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        # key_ref is never exposed.
        return {"address": self.address, "publicKey": self.public_key, "network": self.network.value}


@dataclass(frozen=True, slots=True)
class ContextSnapshot:
    network: Network
    wallet: Optional[WalletHandle] = None

    @property
    def profile(self) -> NetworkProfile:
        return NETWORK_PROFILES[self.network]


class NetworkContext:
    """The process's current network and active wallet, mutated only by explicit calls."""

    def __init__(self, network: Network | str = DEFAULT_NETWORK) -> None:
        self._state = ContextSnapshot(network=Network.parse(network))

    def current(self) -> ContextSnapshot:
        return self._state

    def switch_network(self, target: Network | str) -> ContextSnapshot:
        """
        Make ``target`` the current network.

        Wallet handles are network-scoped: the active wallet survives only if it
        belongs to the target network. Raises ``UnknownNetworkError`` and leaves
        state untouched when ``target`` is not an enumerated network.
        """
        network = Network.parse(target)
        previous = self._state
        wallet = previous.wallet if previous.wallet is not None and previous.wallet.network is network else None
        self._state = ContextSnapshot(network=network, wallet=wallet)
        if previous.wallet is not None and wallet is None:
            logger.info("Cleared active wallet on switch from %s to %s", previous.network.value, network.value)
        logger.info("Switched network %s -> %s", previous.network.value, network.value)
        return self._state

    def attach_wallet(self, handle: WalletHandle) -> ContextSnapshot:
        """Make ``handle`` the active wallet; it must belong to the current network."""
        state = self._state
        if handle.network is not state.network:
            raise NetworkMismatchError(
                f"Wallet belongs to {handle.network.value} but current network is {state.network.value}"
            )
        self._state = ContextSnapshot(network=state.network, wallet=handle)
        logger.info("Attached wallet %s on %s", handle.address, state.network.value)
        return self._state

    def detach_wallet(self) -> ContextSnapshot:
        self._state = ContextSnapshot(network=self._state.network)
        return self._state
