from __future__ import annotations

import secrets
from typing import Optional, Sequence

from web3 import Web3

from .base import RandomnessSource


class KeccakRandomnessSource(RandomnessSource):
    """Words derived as ``keccak256(seed, request_id, index)``.

    A fixed seed makes deliveries reproducible; without one a fresh secret
    seed is drawn per process.
    """

    def __init__(self, seed: Optional[str] = None) -> None:
        self._seed = seed if seed is not None else secrets.token_hex(32)

    async def generate(self, request_id: int, num_words: int) -> Sequence[int]:
        if num_words <= 0:
            raise RuntimeError(f"request {request_id} asks for {num_words} words")
        return tuple(
            int.from_bytes(
                Web3.solidity_keccak(
                    ["string", "uint256", "uint256"], [self._seed, int(request_id), i]
                ),
                "big",
            )
            for i in range(num_words)
        )
