from __future__ import annotations

from typing import List, Protocol


class EmbeddingProvider(Protocol):
    """Turn text into a vector for decision similarity search."""

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            Exception: Implementations may raise on transport or API failures;
                callers decide whether a missing embedding is fatal.
        """
        ...
