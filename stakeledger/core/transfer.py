"""Value transport between participants, the funding source and the pool.

Every gateway follows the same two-step protocol: ``submit`` hands over a
:class:`TransferRequest` together with a completion callback, and the gateway
invokes that callback once the outcome is known. Gateways may call back
before ``submit`` returns (the in-memory and NEAR CLI gateways do) or at some
later point (:class:`DeferredTransferGateway`).
"""
import re
import uuid
import subprocess
from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple
from loguru import logger
from pydantic import BaseModel, Field

YOCTO_PER_NEAR = 10**24


class TransferKind(str, Enum):
    FUNDING = "funding"
    REWARD = "reward"
    PRINCIPAL = "principal"


class TransferStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TransferRequest(BaseModel):
    """A single movement of value."""
    ticket_id: str
    kind: TransferKind
    sender: str
    receiver: str
    amount: int = Field(gt=0)
    memo: Optional[str] = None


class TransferOutcome(BaseModel):
    """Result reported by a gateway for one request."""
    ticket_id: str
    success: bool
    error: Optional[str] = None
    transaction_hash: Optional[str] = None


class TransferTicket(BaseModel):
    """Caller-facing handle for a submitted transfer."""
    ticket_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: TransferKind
    account_id: str
    amount: int
    status: TransferStatus = TransferStatus.PENDING
    error: Optional[str] = None
    transaction_hash: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status != TransferStatus.PENDING

    @property
    def succeeded(self) -> bool:
        return self.status == TransferStatus.SUCCEEDED


CompletionCallback = Callable[[TransferOutcome], None]


class TransferGateway(ABC):
    """Moves value; reports each outcome exactly once through a callback."""

    @abstractmethod
    def submit(self, request: TransferRequest, on_complete: CompletionCallback) -> None:
        ...


class InMemoryTransferGateway(TransferGateway):
    """Settles every transfer immediately against local balances.

    With ``enforce_balances`` a sender without enough funds fails the
    transfer. ``fail_next`` makes the following transfers fail regardless.
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None, enforce_balances: bool = False):
        self.balances: Dict[str, int] = defaultdict(int, balances or {})
        self.enforce_balances = enforce_balances
        self.history: List[TransferRequest] = []
        self._failures: List[str] = []

    def fail_next(self, count: int = 1, reason: str = "transfer rejected") -> None:
        self._failures.extend([reason] * count)

    def submit(self, request: TransferRequest, on_complete: CompletionCallback) -> None:
        self.history.append(request)
        if self._failures:
            on_complete(TransferOutcome(ticket_id=request.ticket_id, success=False,
                                        error=self._failures.pop(0)))
            return
        if self.enforce_balances and self.balances[request.sender] < request.amount:
            on_complete(TransferOutcome(
                ticket_id=request.ticket_id,
                success=False,
                error=f"{request.sender} has insufficient funds for {request.amount}",
            ))
            return
        self.balances[request.sender] -= request.amount
        self.balances[request.receiver] += request.amount
        on_complete(TransferOutcome(ticket_id=request.ticket_id, success=True))


class DeferredTransferGateway(TransferGateway):
    """Queues transfers until the host reports their outcome with ``settle``."""

    def __init__(self):
        self.pending: Dict[str, Tuple[TransferRequest, CompletionCallback]] = {}

    def submit(self, request: TransferRequest, on_complete: CompletionCallback) -> None:
        self.pending[request.ticket_id] = (request, on_complete)

    def settle(self, ticket_id: str, success: bool = True, error: Optional[str] = None,
               transaction_hash: Optional[str] = None) -> None:
        request, on_complete = self.pending.pop(ticket_id)
        on_complete(TransferOutcome(
            ticket_id=request.ticket_id,
            success=success,
            error=error if not success else None,
            transaction_hash=transaction_hash,
        ))

    def settle_all(self, success: bool = True, error: Optional[str] = None) -> None:
        for ticket_id in list(self.pending):
            self.settle(ticket_id, success=success, error=error)


def format_near_amount(amount_yocto: int) -> str:
    """Render a yoctoNEAR integer as a plain NEAR decimal string."""
    whole, frac = divmod(amount_yocto, YOCTO_PER_NEAR)
    if not frac:
        return str(whole)
    return f"{whole}.{frac:024d}".rstrip('0')


def parse_transaction_hash(output_text: str) -> Optional[str]:
    """Extract the transaction id from NEAR CLI output."""
    match = re.search(r'Transaction Id\s+([a-zA-Z0-9]+)', output_text)
    return match.group(1) if match else None


class NearCliTransferGateway(TransferGateway):
    """Sends NEAR with the ``near`` CLI; completes when the command returns."""

    def __init__(self, network: str = "testnet", near_binary: str = "near"):
        self.network = network
        self.near_binary = near_binary

    def build_command(self, request: TransferRequest) -> List[str]:
        return [
            self.near_binary, 'send',
            request.sender,
            request.receiver,
            format_near_amount(request.amount),
            '--networkId', self.network,
        ]

    def submit(self, request: TransferRequest, on_complete: CompletionCallback) -> None:
        cmd = self.build_command(request)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Failed to run NEAR CLI for {request.kind.value} transfer: {e}")
            on_complete(TransferOutcome(ticket_id=request.ticket_id, success=False, error=str(e)))
            return

        if result.returncode == 0:
            on_complete(TransferOutcome(
                ticket_id=request.ticket_id,
                success=True,
                transaction_hash=parse_transaction_hash(result.stdout),
            ))
        else:
            logger.debug(f"NEAR CLI output: {result.stdout}")
            on_complete(TransferOutcome(
                ticket_id=request.ticket_id,
                success=False,
                error=result.stderr.strip() or f"near exited with code {result.returncode}",
            ))


def submit_transfer(gateway: TransferGateway,
                    ticket: TransferTicket,
                    sender: str,
                    receiver: str,
                    on_success: Callable[[], None],
                    on_settled: Optional[Callable[[TransferTicket], None]] = None,
                    memo: Optional[str] = None) -> TransferTicket:
    """Submit ``ticket`` to ``gateway`` and resolve it exactly once.

    ``on_success`` applies the state change that depends on the transfer and
    only runs after the gateway confirms it. A failed transfer leaves state
    untouched and is reported on the ticket. ``on_settled`` runs after either
    outcome.
    """
    request = TransferRequest(
        ticket_id=ticket.ticket_id,
        kind=ticket.kind,
        sender=sender,
        receiver=receiver,
        amount=ticket.amount,
        memo=memo,
    )

    def _complete(outcome: TransferOutcome) -> None:
        if ticket.done:
            logger.warning(f"Ignoring duplicate completion for {ticket.kind.value} transfer {ticket.ticket_id}")
            return
        try:
            if outcome.success:
                try:
                    on_success()
                except Exception as e:
                    # Funds moved but the ledger could not record it
                    ticket.status = TransferStatus.FAILED
                    ticket.error = f"state update failed after transfer: {e}"
                    ticket.transaction_hash = outcome.transaction_hash
                    logger.error(f"{ticket.kind.value.capitalize()} transfer {ticket.ticket_id}: {ticket.error}")
                    raise
                ticket.status = TransferStatus.SUCCEEDED
                ticket.transaction_hash = outcome.transaction_hash
            else:
                ticket.status = TransferStatus.FAILED
                ticket.error = outcome.error or "transfer failed"
                logger.error(f"{ticket.kind.value.capitalize()} transfer of {ticket.amount} "
                             f"from {sender} to {receiver} failed: {ticket.error}")
        finally:
            if on_settled:
                on_settled(ticket)

    gateway.submit(request, _complete)
    return ticket
