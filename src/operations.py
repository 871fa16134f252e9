"""
Long-running operation handles and the polling engine.

An Operation wraps the server's record of an asynchronous admin job. Its
state only moves forward: RUNNING, then exactly one of DONE_OK, DONE_ERROR
or CANCELLED. Polling is driven by the caller, either one tick at a time
with poll() or to completion with result().
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Generic, Optional, Type, TypeVar

import transport as rpc
from config import PollingSettings
from errors import (
    AdminError,
    DeadlineExceededError,
    ErrorCode,
    OperationCancelledError,
    OperationFailedError,
    ServiceError,
    code_from_rpc,
)
from metadata import (
    OperationMetadata,
    OptimizeRestoredDatabaseMetadata,
    RestoreDatabaseMetadata,
    type_url_of,
    unpack,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")
M = TypeVar("M", bound=OperationMetadata)


class OperationState(Enum):
    """Lifecycle states of a long-running operation."""

    RUNNING = "RUNNING"
    DONE_OK = "DONE_OK"
    DONE_ERROR = "DONE_ERROR"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not OperationState.RUNNING


@dataclass
class OperationEntry:
    """A server-side operation record, as returned by get and list calls."""

    name: str
    done: bool = False
    metadata: Optional[Dict] = None
    error: Optional[Dict] = None
    response: Optional[Dict] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "OperationEntry":
        return cls(
            name=data["name"],
            done=bool(data.get("done", False)),
            metadata=data.get("metadata"),
            error=data.get("error"),
            response=data.get("response"),
        )

    @property
    def metadata_type_url(self) -> Optional[str]:
        return type_url_of(self.metadata)

    def unpack_metadata(self, metadata_type: Type[M]) -> M:
        """Decode the metadata envelope; raises InvalidMetadataTypeError on mismatch."""
        return unpack(self.metadata, metadata_type)

    @property
    def error_code(self) -> Optional[ErrorCode]:
        if not self.error:
            return None
        return code_from_rpc(self.error.get("code"))

    @property
    def state(self) -> OperationState:
        if not self.done:
            return OperationState.RUNNING
        if self.error:
            if self.error_code is ErrorCode.CANCELLED:
                return OperationState.CANCELLED
            return OperationState.DONE_ERROR
        return OperationState.DONE_OK

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "done": self.done,
            "state": self.state.value,
            "metadata_type": self.metadata_type_url,
            "error": self.error,
        }


class Operation(Generic[R, M]):
    """
    Handle to a long-running operation.

    Args:
        transport: RPC transport used for get/cancel calls
        entry: Initial operation record returned by the triggering RPC
        result_decoder: Turns the response payload into the result value;
            None for operations without a result
        metadata_type: Expected metadata schema
        polling: Backoff policy used by result()
    """

    def __init__(
        self,
        transport: rpc.Transport,
        entry: OperationEntry,
        result_decoder: Optional[Callable[[Dict], R]],
        metadata_type: Type[M],
        polling: PollingSettings,
    ):
        self._transport = transport
        self._name = entry.name
        self._result_decoder = result_decoder
        self._metadata_type = metadata_type
        self._polling = polling
        # Serializes ticks so at most one get-operation call is in flight
        self._lock = threading.Lock()
        self._entry = entry
        self._state = OperationState.RUNNING
        self._result: Optional[R] = None
        self._exception: Optional[OperationFailedError] = None
        self._apply(entry)

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def metadata(self) -> Optional[M]:
        """Metadata as of the last poll; no RPC is made."""
        if not self._entry.metadata:
            return None
        return self._entry.unpack_metadata(self._metadata_type)

    def done(self) -> bool:
        return self._state.is_terminal

    is_terminal = done

    def cancelled(self) -> bool:
        return self._state is OperationState.CANCELLED

    def _apply(self, entry: OperationEntry) -> None:
        if self._state.is_terminal:
            return
        self._entry = entry
        new_state = entry.state
        if new_state is OperationState.RUNNING:
            return

        if new_state is OperationState.DONE_OK:
            if self._result_decoder is not None and entry.response is not None:
                self._result = self._result_decoder(entry.response)
            logger.info(f"Operation {self._name} completed")
        elif new_state is OperationState.CANCELLED:
            self._exception = OperationCancelledError(
                self._name, (entry.error or {}).get("message", "operation was cancelled")
            )
            logger.info(f"Operation {self._name} was cancelled")
        else:
            message = (entry.error or {}).get("message", "")
            self._exception = OperationFailedError(self._name, entry.error_code, message)
            logger.error(f"Operation {self._name} FAILED: {self._exception}")
        self._state = new_state

    def poll(self, timeout: Optional[float] = None) -> OperationState:
        """
        Run one polling tick.

        Args:
            timeout: Timeout for the get-operation call

        Returns:
            State after the tick

        Raises:
            ServiceError: If the get-operation call fails
        """
        with self._lock:
            if self._state.is_terminal:
                return self._state
            raw = self._transport.unary_call(
                rpc.GET_OPERATION, {"name": self._name}, timeout=timeout
            )
            self._apply(OperationEntry.from_dict(raw))
            logger.debug(f"Polled {self._name}: {self._state.value}")
            return self._state

    def _blocking_poll(self, timeout: Optional[float] = None) -> None:
        if self.done():
            return

        budget = self._polling.total_timeout if timeout is None else timeout
        start = time.monotonic()
        attempt = 0

        while True:
            remaining = budget - (time.monotonic() - start)
            if remaining <= 0:
                break

            rpc_timeout = min(self._polling.rpc_timeout_for(attempt), remaining)
            try:
                if self.poll(timeout=rpc_timeout).is_terminal:
                    return
            except ServiceError as e:
                if not e.retryable:
                    logger.error(f"Polling {self._name} failed: {e}")
                    raise
                logger.warning(
                    f"Transient error polling {self._name} (attempt {attempt + 1}): {e}"
                )

            remaining = budget - (time.monotonic() - start)
            if remaining <= 0:
                break
            delay = min(self._polling.delay_for(attempt), remaining)
            logger.debug(f"{self._name} still running, next poll in {delay:.1f}s")
            time.sleep(delay)
            attempt += 1

        waited = time.monotonic() - start
        logger.warning(f"Timed out waiting for {self._name} after {waited:.0f}s")
        raise DeadlineExceededError(self._name, waited)

    def result(self, timeout: Optional[float] = None) -> Optional[R]:
        """
        Block until the operation finishes and return its result.

        Args:
            timeout: Total seconds to wait; defaults to the polling total_timeout

        Returns:
            Decoded result, or None for operations without one

        Raises:
            OperationFailedError: If the server reports the operation failed
            OperationCancelledError: If the operation was cancelled
            DeadlineExceededError: If the wait budget ran out first
            ServiceError: If polling hit a non-retryable RPC error
        """
        self._blocking_poll(timeout)
        if self._exception is not None:
            raise self._exception
        return self._result

    def exception(self, timeout: Optional[float] = None) -> Optional[AdminError]:
        """Block until done and return the failure, or None on success."""
        self._blocking_poll(timeout)
        return self._exception

    def cancel(self) -> None:
        """
        Ask the server to cancel the operation.

        This does not change the handle's state; the operation may still
        finish successfully. Only transport-level failures are raised.
        """
        logger.info(f"Requesting cancellation of {self._name}")
        self._transport.unary_call(rpc.CANCEL_OPERATION, {"name": self._name})

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._name} {self._state.value}>"


class RestoreDatabaseOperation(Operation):
    """
    Restore operation that also exposes the optimize step chained after it.

    When a restore finishes the server may start an optimize operation on the
    new database. It is not returned by the restore call; use
    optimize_operation() to get a handle to it.
    """

    def optimize_operation(
        self, timeout: Optional[float] = None
    ) -> Optional[Operation[None, OptimizeRestoredDatabaseMetadata]]:
        """
        Wait for the restore, then return the chained optimize operation.

        Returns:
            Operation handle, or None if the server did not chain one
        """
        self.result(timeout)
        metadata: RestoreDatabaseMetadata = self.metadata
        optimize_name = metadata.optimize_database_operation_name if metadata else ""
        if not optimize_name:
            return None
        raw = self._transport.unary_call(rpc.GET_OPERATION, {"name": optimize_name})
        return Operation(
            self._transport,
            OperationEntry.from_dict(raw),
            None,
            OptimizeRestoredDatabaseMetadata,
            self._polling,
        )
