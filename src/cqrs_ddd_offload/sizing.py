"""Size classification: direct send, offload, or reject."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import MessageTooLargeError

if TYPE_CHECKING:
    from .attributes import Message

MAX_QUEUE_MESSAGE_BYTES = 262_144  # 256 KiB, the SQS and SNS ceiling
MAX_OFFLOAD_MESSAGE_BYTES = 33_554_432  # 32 MiB


class Route(Enum):
    """Routing decision for an outgoing message."""

    DIRECT = "direct"
    OFFLOAD = "offload"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SizeDecision:
    """Outcome of classifying one message."""

    route: Route
    size: int
    limit: int

    def raise_if_rejected(self) -> None:
        if self.route is Route.REJECTED:
            raise MessageTooLargeError(self.size, self.limit)


@dataclass(frozen=True)
class SizePolicy:
    """Maps a message size onto a :class:`Route`.

    ``always_offload`` forces offloading of every message that is not above
    ``absolute_limit``; oversized messages are rejected regardless.
    """

    direct_limit: int = MAX_QUEUE_MESSAGE_BYTES
    absolute_limit: int = MAX_OFFLOAD_MESSAGE_BYTES
    always_offload: bool = False

    def __post_init__(self) -> None:
        if self.direct_limit < 1:
            raise ValueError("direct_limit must be >= 1")
        if self.absolute_limit <= self.direct_limit:
            raise ValueError("absolute_limit must be greater than direct_limit")

    def route_for(self, size: int) -> Route:
        if size > self.absolute_limit:
            return Route.REJECTED
        if self.always_offload or size > self.direct_limit:
            return Route.OFFLOAD
        return Route.DIRECT

    def classify(self, message: Message) -> SizeDecision:
        size = message.size
        return SizeDecision(self.route_for(size), size, self.absolute_limit)
