from __future__ import annotations

import abc
from typing import Sequence


class RandomnessSource(abc.ABC):
    """Abstract provider of random words for pending requests."""

    @abc.abstractmethod
    async def generate(self, request_id: int, num_words: int) -> Sequence[int]:
        """Return ``num_words`` unsigned 256-bit integers for ``request_id``.

        Implementations should raise `RuntimeError` if randomness cannot be
        produced.
        """

    async def close(self) -> None:
        """Optional hook for sources that hold resources."""
        return None
