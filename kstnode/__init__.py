"""
KST Node - identity and network state core
"""

__version__ = "1.0.0"
__author__ = "KST Node Team"

from .addresses import make_v2_address
from .validation import is_valid_address, is_valid_address_list, is_valid_name
from .work import WorkState
from .mining import MiningGate
from .node import NodeCore, NodeConfig

__all__ = ['make_v2_address', 'is_valid_address', 'is_valid_address_list',
           'is_valid_name', 'WorkState', 'MiningGate', 'NodeCore', 'NodeConfig']
