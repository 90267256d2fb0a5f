from .base import RandomnessSource
from .keccak import KeccakRandomnessSource

__all__ = [
    "RandomnessSource",
    "KeccakRandomnessSource",
]
