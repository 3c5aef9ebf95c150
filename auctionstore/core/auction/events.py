"""
Events - append-only notifications of auction state transitions.

Each event carries enough context (contract, asset id, parties, amounts)
for an off-chain observer to rebuild auction state from the log alone.
Events are pydantic models; the log stores them as JSON.

The log lives in the same world state as everything else, so events
emitted by an aborted call disappear with the rest of its writes.
"""

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, PlainValidator, TypeAdapter

from auctionstore.core.storage.kv import KeyValueStore
from auctionstore.crypto import bytes_to_hex
from auctionstore.utils.validation import MAX_UINT64, parse_address

EVENT_BUCKET = "event"
META_BUCKET = "meta"
EVENT_SEQ_KEY = b"event_seq"


def _to_address(value: Any) -> bytes:
    return parse_address(value)


Address = Annotated[
    bytes,
    PlainValidator(_to_address),
    PlainSerializer(bytes_to_hex, return_type=str, when_used="json"),
]
Uint64 = Annotated[int, Field(ge=0, le=MAX_UINT64)]


class AuctionEvent(BaseModel):
    """Fields shared by every auction event."""
    model_config = ConfigDict(frozen=True)

    contract: Address
    asset_id: Uint64


class AuctionStarted(AuctionEvent):
    event: Literal["AuctionStarted"] = "AuctionStarted"
    end_block: Uint64
    seller: Address
    starting_price: Uint64


class HighestBidUpdated(AuctionEvent):
    event: Literal["HighestBidUpdated"] = "HighestBidUpdated"
    bidder: Address
    bid: Uint64


class AuctionEnded(AuctionEvent):
    event: Literal["AuctionEnded"] = "AuctionEnded"
    highest_bidder: Address
    highest_bid: Uint64


Event = Annotated[
    Union[AuctionStarted, HighestBidUpdated, AuctionEnded],
    Field(discriminator="event"),
]

EVENT_ADAPTER: TypeAdapter = TypeAdapter(Event)


def decode_event(data: bytes) -> AuctionEvent:
    """Parse a JSON-encoded event of any kind."""
    return EVENT_ADAPTER.validate_json(data)


class EventSink:
    """
    Sequence-numbered event log over a KeyValueStore.

    The sequence counter is stored next to the events, so a rolled back
    call also rolls back the numbers it consumed.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    @property
    def next_seq(self) -> int:
        data = self.store.get(META_BUCKET, EVENT_SEQ_KEY)
        return int.from_bytes(data, byteorder="big") if data is not None else 0

    def emit(self, event: AuctionEvent) -> int:
        """Append an event; returns its sequence number."""
        seq = self.next_seq
        self.store.put(EVENT_BUCKET, seq.to_bytes(8, byteorder="big"), event.model_dump_json().encode())
        self.store.put(META_BUCKET, EVENT_SEQ_KEY, (seq + 1).to_bytes(8, byteorder="big"))
        return seq

    def events(self, start: int = 0, stop: Optional[int] = None) -> List[AuctionEvent]:
        """Events with start <= seq < stop, in emission order."""
        end = self.next_seq if stop is None else min(stop, self.next_seq)
        result = []
        # Sequence numbers are dense: a rollback also rewinds the counter
        for seq in range(max(start, 0), end):
            data = self.store.get(EVENT_BUCKET, seq.to_bytes(8, byteorder="big"))
            if data is None:
                raise RuntimeError(f"Event log is missing seq {seq}")
            result.append(decode_event(data))
        return result

    def __len__(self) -> int:
        return self.next_seq
