"""
Stateless UTXO Simulation

Miners, bridges and users coordinating over an RSA accumulator so that no
party stores the full unspent-output set.
"""

from .bridge import Bridge, BridgeNode
from .channel import BroadcastChannel, Receiver
from .config import Settings, get_settings
from .correlation import WitnessResponseRouter
from .genesis import Genesis
from .miner import Miner, MinerNode
from .models import Block, Transaction, UserUpdate, Utxo, WitnessRequest, WitnessResponse, utxo_prime
from .simulation import Simulation
from .user import RandomSelector, User, UserNode, select_lowest_id

__version__ = "0.1.0"
__all__ = [
    "Bridge",
    "BridgeNode",
    "BroadcastChannel",
    "Receiver",
    "Settings",
    "get_settings",
    "WitnessResponseRouter",
    "Genesis",
    "Miner",
    "MinerNode",
    "Block",
    "Transaction",
    "UserUpdate",
    "Utxo",
    "WitnessRequest",
    "WitnessResponse",
    "utxo_prime",
    "Simulation",
    "RandomSelector",
    "User",
    "UserNode",
    "select_lowest_id",
]
