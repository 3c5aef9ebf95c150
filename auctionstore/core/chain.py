"""
Chain - in-process host for the auction engine.

Conceptual Background:
---------------------
The engine is written as a contract: it trusts a host to supply the
caller, the attached value and the block height, and to make every call
all-or-nothing. ``Chain`` is that host:

1. **World state**: one ``JournaledStore`` holds auction records, refund
   balances, currency balances, registry ownership and the event log, so
   a discarded call leaves no trace anywhere
2. **Calls**: ``call()`` opens a journal frame, moves the attached value
   into the engine, runs the method and commits; a ``Revert`` rolls the
   frame back and becomes a failed ``CallResult``
3. **Blocks**: the height only moves when ``mine()`` / ``advance_to()``
   are called
4. **Receivers**: an account may install a ``Receiver`` whose hooks run
   when it is paid or handed a token. Hooks may call back into the chain
   (re-entrancy) and may refuse, which undoes the payment or transfer

Persistence:
-----------
With a ``StorageManager`` the committed state, the block height and the
deployed contract addresses survive a restart.
"""

from typing import Callable, Dict, List, Optional

from auctionstore.core.auction.engine import AuctionEngine
from auctionstore.core.auction.events import AuctionEvent, EventSink
from auctionstore.core.auction.refunds import RefundLedger
from auctionstore.core.auction.store import AuctionStore
from auctionstore.core.context import CallContext, CallResult
from auctionstore.core.errors import ErrorKind, Revert, require
from auctionstore.core.registry.asset_registry import AssetRegistry, RegistryClient
from auctionstore.core.registry.nft import NonFungibleToken
from auctionstore.core.storage.journal import JournaledStore
from auctionstore.core.storage.kv import MemoryStore
from auctionstore.core.storage.storage_manager import StorageManager
from auctionstore.crypto import ZERO_ADDRESS, bytes_to_hex, contract_address, short
from auctionstore.utils.logger import get_logger
from auctionstore.utils.validation import validate_address, validate_amount, validate_block_number

logger = get_logger("chain")

BALANCE_BUCKET = "balance"
NONCE_BUCKET = "nonce"
CONTRACT_BUCKET = "contract"

ENGINE_KEY = b"engine"
TOKEN_KEY_PREFIX = b"token:"

# Currency balances are stored as 32-byte integers; only single amounts are uint64
BALANCE_SIZE = 32


class Receiver:
    """
    Behaviour of an account when it receives currency or a token.

    The default accepts everything. Subclass to refuse, or to call back
    into the chain from inside a payment. Raising ``Revert`` from a hook
    counts as a refusal.
    """

    def on_receive(self, chain: "Chain", from_: bytes, amount: int) -> bool:
        return True

    def on_token_received(
        self,
        chain: "Chain",
        token: bytes,
        operator: bytes,
        from_: bytes,
        asset_id: int,
    ) -> bool:
        return True


class Chain:
    """
    Host chain for one AuctionEngine.

    Attributes:
        state: Journaled world state
        block_number: Current height
        events: Event log
        engine: The deployed engine (None until deploy_engine)
        tokens: Deployed reference registries by address
    """

    def __init__(self, storage_manager: Optional[StorageManager] = None, genesis_block: int = 0):
        """
        Initialize the chain.

        Args:
            storage_manager: Persistence manager. None = in-memory only.
            genesis_block: Height of a fresh chain (ignored when a persisted
                height exists)
        """
        self.storage_manager = storage_manager
        self.state = JournaledStore(storage_manager if storage_manager is not None else MemoryStore())
        self.events = EventSink(self.state)

        self.engine: Optional[AuctionEngine] = None
        self.tokens: Dict[bytes, NonFungibleToken] = {}

        self._registries: Dict[bytes, AssetRegistry] = {}
        self._receivers: Dict[bytes, Receiver] = {}
        self._subscribers: List[Callable[[AuctionEvent], None]] = []

        tip = storage_manager.get_tip() if storage_manager is not None else None
        if tip is not None:
            self.block_number = tip
            self._attach_contracts()
            logger.info(f"Loaded chain at block {tip} ({len(self.events)} events)")
        else:
            valid, err = validate_block_number(genesis_block, "genesis_block")
            if not valid:
                raise ValueError(err)
            self.block_number = genesis_block
            self._save_tip()

    # =========================================================================
    # Blocks
    # =========================================================================

    def mine(self, blocks: int = 1) -> int:
        """Advance the height by ``blocks``; returns the new height."""
        if blocks < 0:
            raise ValueError(f"blocks must be >= 0, got {blocks}")
        return self.advance_to(self.block_number + blocks)

    def advance_to(self, height: int) -> int:
        valid, err = validate_block_number(height, "height")
        if not valid:
            raise ValueError(err)
        if height < self.block_number:
            raise ValueError(f"Cannot move back from block {self.block_number} to {height}")

        self.block_number = height
        self._save_tip()
        logger.debug(f"Advanced to block {height}")
        return height

    def _save_tip(self) -> None:
        if self.storage_manager is not None:
            self.storage_manager.save_tip(self.block_number)

    # =========================================================================
    # Currency
    # =========================================================================

    def balance_of(self, address: bytes) -> int:
        data = self.state.get(BALANCE_BUCKET, address)
        return int.from_bytes(data, byteorder="big") if data is not None else 0

    def _set_balance(self, address: bytes, amount: int) -> None:
        self.state.put(BALANCE_BUCKET, address, amount.to_bytes(BALANCE_SIZE, byteorder="big"))

    def fund(self, address: bytes, amount: int) -> None:
        """Mint currency to an account."""
        valid, err = validate_address(address, "address")
        if not valid:
            raise ValueError(err)
        valid, err = validate_amount(amount, "amount")
        if not valid:
            raise ValueError(err)

        self._set_balance(address, self.balance_of(address) + amount)
        logger.debug(f"Funded {short(address)} with {amount}")

    def total_supply(self) -> int:
        """Sum of every currency balance."""
        return sum(int.from_bytes(data, byteorder="big") for _, data in self.state.items(BALANCE_BUCKET))

    def _move(self, from_: bytes, to: bytes, amount: int) -> bool:
        balance = self.balance_of(from_)
        if balance < amount:
            return False
        self._set_balance(from_, balance - amount)
        self._set_balance(to, self.balance_of(to) + amount)
        return True

    def send(self, from_: bytes, to: bytes, amount: int) -> bool:
        """
        Pay ``amount`` and run the recipient's receive hook.

        The payment and everything the hook did are undone if the payer is
        short of funds or the hook refuses.

        Returns:
            True if the payment stands
        """
        self.state.begin()
        try:
            if not self._move(from_, to, amount):
                self.state.rollback()
                logger.warning(f"Payment of {amount} from {short(from_)} failed: insufficient funds")
                return False

            receiver = self._receivers.get(to)
            if receiver is not None and not self._run_hook(receiver.on_receive, from_, amount):
                self.state.rollback()
                logger.warning(f"Payment of {amount} refused by {short(to)}")
                return False
        except BaseException:
            self.state.rollback()
            raise

        self.state.commit()
        return True

    # =========================================================================
    # Receivers
    # =========================================================================

    def set_receiver(self, address: bytes, receiver: Optional[Receiver]) -> None:
        """Install (or with None, remove) the hooks of an account."""
        if receiver is None:
            self._receivers.pop(address, None)
        else:
            self._receivers[address] = receiver

    def _run_hook(self, hook: Callable[..., bool], *args) -> bool:
        try:
            return hook(self, *args) is True
        except Revert as exc:
            logger.warning(f"Receiver hook reverted: {exc}")
            return False

    def _token_received(
        self,
        token: bytes,
        operator: bytes,
        from_: bytes,
        to: bytes,
        asset_id: int,
    ) -> bool:
        receiver = self._receivers.get(to)
        if receiver is None:
            return True

        # A refusal also discards whatever the hook did
        self.state.begin()
        try:
            accepted = self._run_hook(receiver.on_token_received, token, operator, from_, asset_id)
        except BaseException:
            self.state.rollback()
            raise

        if accepted:
            self.state.commit()
        else:
            self.state.rollback()
        return accepted

    # =========================================================================
    # Contracts
    # =========================================================================

    def _next_contract_address(self, deployer: bytes) -> bytes:
        valid, err = validate_address(deployer, "deployer")
        if not valid:
            raise ValueError(err)

        data = self.state.get(NONCE_BUCKET, deployer)
        nonce = int.from_bytes(data, byteorder="big") if data is not None else 0
        self.state.put(NONCE_BUCKET, deployer, (nonce + 1).to_bytes(8, byteorder="big"))
        return contract_address(deployer, nonce)

    def deploy_engine(self, deployer: bytes) -> AuctionEngine:
        """Deploy the auction engine (at most one per chain)."""
        if self.engine is not None:
            raise RuntimeError(f"Auction engine already deployed at {bytes_to_hex(self.engine.address)}")

        address = self._next_contract_address(deployer)
        self.state.put(CONTRACT_BUCKET, ENGINE_KEY, address)
        self.engine = self._build_engine(address)

        logger.info(f"Deployed auction engine at {bytes_to_hex(address)}")
        return self.engine

    def deploy_token(self, deployer: bytes) -> NonFungibleToken:
        """Deploy a reference non-fungible token registry."""
        address = self._next_contract_address(deployer)
        self.state.put(CONTRACT_BUCKET, TOKEN_KEY_PREFIX + address, b"\x01")
        token = self._build_token(address)

        logger.info(f"Deployed token registry at {bytes_to_hex(address)}")
        return token

    def register_registry(self, address: bytes, registry: AssetRegistry) -> None:
        """
        Make a foreign registry reachable at ``address``.

        The registry is used as-is for every engine call; it is not part
        of the journaled state.
        """
        if address in self.tokens:
            raise ValueError(f"{bytes_to_hex(address)} is already a token registry")
        self._registries[address] = registry

    def _build_engine(self, address: bytes) -> AuctionEngine:
        return AuctionEngine(
            address=address,
            auctions=AuctionStore(self.state),
            refunds=RefundLedger(self.state),
            events=self.events,
            registries=self._registry_for,
            send=lambda to, amount: self.send(address, to, amount),
        )

    def _build_token(self, address: bytes) -> NonFungibleToken:
        token = NonFungibleToken(address, self.state, on_token_received=self._token_received)
        self.tokens[address] = token
        return token

    def is_contract(self, address: bytes) -> bool:
        """True for the engine and every deployed or registered registry."""
        address = bytes(address)
        if self.engine is not None and address == self.engine.address:
            return True
        return address in self.tokens or address in self._registries

    def _registry_for(self, asset_contract: bytes) -> AssetRegistry:
        """Registry as seen by the engine. Raises KeyError if unknown."""
        token = self.tokens.get(asset_contract)
        if token is not None:
            return RegistryClient(token, self.engine.address)
        return self._registries[asset_contract]

    def _attach_contracts(self) -> None:
        """Rebuild engine and registry objects from persisted addresses."""
        for key, value in self.state.items(CONTRACT_BUCKET):
            if key == ENGINE_KEY:
                self.engine = self._build_engine(value)
            elif key.startswith(TOKEN_KEY_PREFIX):
                self._build_token(key[len(TOKEN_KEY_PREFIX):])

    # =========================================================================
    # Calls
    # =========================================================================

    def call(self, sender: bytes, method: str, *args, value: int = 0) -> CallResult:
        """
        Run one engine method atomically.

        Args:
            sender: Calling account
            method: One of AuctionEngine.CALLABLE
            *args: Method arguments after the call context
            value: Currency attached to the call

        Returns:
            CallResult; on failure nothing the call did is kept
        """
        if self.engine is None:
            raise RuntimeError("No auction engine deployed")

        seq_before = self.events.next_seq
        self.state.begin()
        try:
            return_value = self._execute(sender, method, args, value)
        except Revert as exc:
            self.state.rollback()
            logger.warning(f"{method} from {_label(sender)} reverted: {exc.kind.name}: {exc.message}")
            return CallResult(
                success=False,
                error=exc.kind,
                message=exc.message,
                block_number=self.block_number,
            )
        except BaseException:
            self.state.rollback()
            raise

        events = self.events.events(seq_before)
        self.state.commit()

        # Re-entrant calls are reported with their outermost call
        if self.state.depth == 0:
            self._notify(events)

        return CallResult(
            success=True,
            return_value=return_value,
            events=events,
            block_number=self.block_number,
        )

    def _execute(self, sender, method: str, args: tuple, value):
        valid, err = validate_address(sender, "sender")
        require(valid, ErrorKind.INVALID_ARGUMENT, err)
        require(sender != ZERO_ADDRESS, ErrorKind.INVALID_ARGUMENT, "sender must not be the zero address")
        require(
            not self.is_contract(sender),
            ErrorKind.INVALID_ARGUMENT,
            f"contract {short(bytes(sender))} cannot call the engine",
        )
        valid, err = validate_amount(value, "value")
        require(valid, ErrorKind.INVALID_ARGUMENT, err)
        require(method in AuctionEngine.CALLABLE, ErrorKind.UNKNOWN_METHOD, f"Unknown method: {method}")

        if value:
            require(
                self._move(sender, self.engine.address, value),
                ErrorKind.INSUFFICIENT_FUNDS,
                f"{short(sender)} cannot attach {value}",
            )

        ctx = CallContext(sender=bytes(sender), value=value, block_number=self.block_number)
        return getattr(self.engine, method)(ctx, *args)

    def subscribe(self, callback: Callable[[AuctionEvent], None]) -> None:
        """
        Receive every event once the call emitting it has committed.

        A failing subscriber is logged and skipped; the call has already
        committed and still reports success.
        """
        self._subscribers.append(callback)

    def _notify(self, events: List[AuctionEvent]) -> None:
        for event in events:
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception as e:
                    logger.error(f"Event subscriber error on {event.event}: {e!r}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        if self.storage_manager is not None:
            self.storage_manager.close()

    def __repr__(self) -> str:
        return f"Chain(block={self.block_number}, events={len(self.events)}, engine={self.engine!r})"


def _label(address) -> str:
    if isinstance(address, (bytes, bytearray)):
        return short(bytes(address))
    return repr(address)
