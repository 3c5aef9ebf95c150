"""
Call boundary types.

``CallContext`` is what a running call knows about its environment (the
equivalent of msg.sender / msg.value / block.number). ``CallResult`` is
what the caller gets back once the call has committed or been discarded.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from auctionstore.core.errors import ErrorKind


@dataclass(frozen=True)
class CallContext:
    """
    Attributes:
        sender: Address making the call
        value: Currency attached to the call
        block_number: Current block height
    """
    sender: bytes
    value: int
    block_number: int


@dataclass
class CallResult:
    """
    Outcome of one atomic call.

    Attributes:
        success: False if the call was aborted and its writes discarded
        error: Abort reason (None on success)
        message: Abort detail
        return_value: What the engine method returned
        events: Events committed by the call, in emission order
        block_number: Height the call ran at
    """
    success: bool
    error: Optional[ErrorKind] = None
    message: str = ""
    return_value: Any = None
    events: List[Any] = field(default_factory=list)
    block_number: int = 0

    def __repr__(self) -> str:
        if self.success:
            return f"CallResult(ok, value={self.return_value!r}, events={len(self.events)})"
        return f"CallResult(failed, {self.error.name}: {self.message})"
