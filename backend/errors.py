"""Error types raised by the SRS core."""


class CardNotFoundError(LookupError):
    """A review was recorded for a card id that is not in the store."""

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class GeneratorError(RuntimeError):
    """The card generator failed (network, auth, rate limit, bad output, timeout)."""


class StoreError(RuntimeError):
    """The record store is unavailable or a write failed."""
