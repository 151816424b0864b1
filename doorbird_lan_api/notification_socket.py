#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
DoorbirdNotificationSocket -- A UDP listener for DoorBird event notifications that:

  1. Binds a UDP port (typically 6524 or 35344) as soon as it is constructed
  2. Recognizes notification datagrams and optionally suppresses bursts of repeats
  3. Resolves the decryption key and decrypts each datagram in its own asyncio task,
     so that slow Argon2i stretching never holds up datagram intake
  4. Delivers authenticated MotionEvent and RingEvent records to registered listeners

  The socket moves through UNBOUND -> BOUND -> CLOSED. Once closed, no listener is
  invoked again, even by tasks for datagrams that were already being decrypted.

  Usage:
      async with DoorbirdNotificationSocket(6524, username, password) as notify_socket:
          notify_socket.register_ring_listener(lambda event: print(event))
          await asyncio.sleep(3600)
"""

from __future__ import annotations

import asyncio
import socket
import time
from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .exceptions import (
    DoorbirdError,
    NotApplicableError,
    MalformedPacketError,
    KeyProviderError,
    KeyFetchError,
    DecryptError,
    NotificationBindError,
  )
from .constants import DOORBIRD_NOTIFY_PORT, BURST_SUPPRESSION_WINDOW
from .notification_packet import NotificationPacket, parse_notification_packet
from .notification_cipher import decrypt_notification
from .notification_events import (
    NotificationEvent,
    NotificationEventDispatcher,
    RingListener,
    MotionListener,
  )
from .key_provider import NotificationKeyProvider, SessionFetcher

ErrorHandler = Callable[[DoorbirdError], None]
"""A callback for key, decryption and processing failures that are otherwise only logged."""

class SocketState(Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    CLOSED = "closed"

class _NotificationSocketProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and DoorbirdNotificationSocket."""

    notify_socket: DoorbirdNotificationSocket

    def __init__(self, notify_socket: DoorbirdNotificationSocket):
        self.notify_socket = notify_socket

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Called when some datagram is received."""
        self.notify_socket.accept_datagram(data, addr)

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        logger.info(f"Error received from transport {self.notify_socket}: {exc}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        logger.debug(f"Connection to transport lost on {self.notify_socket}, exc={exc}")
        self.notify_socket.close()

class DoorbirdNotificationSocket(AsyncContextManager['DoorbirdNotificationSocket']):
    """
    A UDP listener that decodes DoorBird notifications and fans them out to listeners.

    The port is bound by the constructor; failure raises NotificationBindError.
    Datagrams are only received once start() has attached the socket to the running
    event loop (entering the async context manager calls start()).
    """

    port: int
    """The bound UDP port. If 0 was requested, the port chosen by the OS."""

    username: str
    suppress_bursts: bool
    """If True, datagrams arriving within BURST_SUPPRESSION_WINDOW seconds of the last
       accepted datagram are dropped."""

    state: SocketState = SocketState.UNBOUND

    dispatcher: NotificationEventDispatcher
    key_provider: NotificationKeyProvider
    error_handler: Optional[ErrorHandler] = None
    clock: Callable[[], float]

    sock: Optional[socket.socket] = None
    transport: Optional[asyncio.DatagramTransport] = None

    pending_tasks: Set[asyncio.Task[Optional[NotificationEvent]]]
    """Tasks for accepted datagrams whose processing has not finished."""

    last_accepted_time: Optional[float] = None
    """clock() value when the last datagram passed the burst check."""

    def __init__(
            self,
            port: int=DOORBIRD_NOTIFY_PORT,
            username: str="",
            password: str="",
            suppress_bursts: bool=False,
            session_fetcher: Optional[SessionFetcher]=None,
            error_handler: Optional[ErrorHandler]=None,
            bind_address: str="",
            key_provider: Optional[NotificationKeyProvider]=None,
            clock: Callable[[], float]=time.monotonic
          ):
        """Create a notification socket and bind its UDP port.

        Parameters:
            port:            The UDP port to listen on; DoorBird devices send to 6524 and 35344.
            username:        The device user; its first 6 characters identify the device in payloads.
            password:        The device password; its first 5 characters key version 1 notifications.
            suppress_bursts: Drop datagrams arriving within 1 second of the last accepted one.
            session_fetcher: An async callable returning a Control API session response, used to
                                obtain the version 2 notification key. See client_session_fetcher().
            error_handler:   Called with key, decryption and processing errors. If None, they are logged.
            bind_address:    The local address to bind to. Defaults to all interfaces.
            key_provider:    Overrides the key provider built from password and session_fetcher.
            clock:           Monotonic time source, in seconds, for burst suppression.

        Raises:
            NotificationBindError: The port could not be bound.
        """
        self.username = username
        self.suppress_bursts = suppress_bursts
        self.error_handler = error_handler
        self.clock = clock
        self.dispatcher = NotificationEventDispatcher(username)
        self.key_provider = NotificationKeyProvider(password, session_fetcher) if key_provider is None else key_provider
        self.pending_tasks = set()

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((bind_address, port))
        except OSError as e:
            sock.close()
            raise NotificationBindError(port, e) from e
        self.sock = sock
        self.port = sock.getsockname()[1]
        self.state = SocketState.BOUND
        logger.debug(f"Bound notification socket to {sock.getsockname()}")

    def __str__(self) -> str:
        return f"DoorbirdNotificationSocket(port={self.port}, state={self.state.value})"

    def __repr__(self) -> str:
        return str(self)

    @property
    def is_bound(self) -> bool:
        return self.state is SocketState.BOUND

    def register_ring_listener(self, listener: RingListener) -> int:
        """Adds a listener for doorbell events. Returns an ID for remove_listener()."""
        return self.dispatcher.register_ring_listener(listener)

    def register_motion_listener(self, listener: MotionListener) -> int:
        """Adds a listener for motion events. Returns an ID for remove_listener()."""
        return self.dispatcher.register_motion_listener(listener)

    def remove_listener(self, i: int) -> None:
        """Removes a ring or motion listener. Raises KeyError if i is not registered."""
        self.dispatcher.remove_listener(i)

    async def start(self) -> None:
        """Attaches the bound socket to the running event loop and starts receiving datagrams."""
        if not self.is_bound:
            raise DoorbirdError(f"Cannot start {self}")
        assert self.transport is None and self.sock is not None
        loop = asyncio.get_running_loop()
        untyped_transport, protocol = await loop.create_datagram_endpoint(
            lambda: _NotificationSocketProtocol(self),
            sock=self.sock
          )
        # asyncio datagram transports do not inherit from asyncio.DatagramTransport
        transport: asyncio.DatagramTransport = untyped_transport # type: ignore[assignment]
        logger.debug(f"Created datagram endpoint for {self}. transport={transport}, protocol={protocol}")
        self.transport = transport

    def close(self) -> None:
        """Stops receiving datagrams. Results of datagrams still being processed are discarded.
           Calling close() again has no effect."""
        if self.state is SocketState.CLOSED:
            return
        logger.debug(f"Closing {self}")
        self.state = SocketState.CLOSED
        if self.transport is not None:
            transport = self.transport
            self.transport = None
            # closing the transport also closes the socket
            transport.close()
        elif self.sock is not None:
            self.sock.close()
        self.sock = None

    async def drain(self) -> None:
        """Waits until every accepted datagram has been fully processed."""
        while len(self.pending_tasks) > 0:
            await asyncio.gather(*list(self.pending_tasks), return_exceptions=True)

    async def wait_closed(self) -> None:
        """Closes the socket and waits for in-flight datagram tasks to finish."""
        self.close()
        await self.drain()

    def accept_datagram(self, data: bytes, addr: Optional[HostAndPort]=None) -> Optional[asyncio.Task[Optional[NotificationEvent]]]:
        """Screens a received datagram and, if it is accepted, schedules a task that decrypts
           and dispatches it. Must be called from the event loop.

           Returns the scheduled task, or None if the datagram was dropped.
        """
        if not self.is_bound:
            return None
        try:
            packet = parse_notification_packet(data)
        except NotApplicableError as e:
            logger.debug(f"Ignoring datagram from {addr}: {e}")
            return None
        except MalformedPacketError as e:
            logger.debug(f"Dropping malformed notification from {addr}: {e}")
            return None

        if self.suppress_bursts:
            now = self.clock()
            if self.last_accepted_time is not None and now - self.last_accepted_time < BURST_SUPPRESSION_WINDOW:
                logger.debug(f"Suppressing notification burst from {addr}: {packet}")
                return None
            self.last_accepted_time = now

        logger.debug(f"Accepted notification from {addr}: {packet}")
        task = asyncio.create_task(self.process_packet(packet))
        self.pending_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def process_packet(self, packet: NotificationPacket) -> Optional[NotificationEvent]:
        """Resolves the key for a parsed packet, decrypts it, and dispatches the event.

           Returns the dispatched event, or None if the packet was dropped.
        """
        try:
            key = await self.key_provider.key_for(packet)
            plaintext = decrypt_notification(key, packet.nonce, packet.ciphertext)
        except (KeyProviderError, DecryptError) as e:
            self._report_error(e)
            return None
        if not self.is_bound:
            logger.debug(f"Discarding notification decrypted after close: {packet}")
            return None
        return self.dispatcher.dispatch(plaintext)

    def _report_error(self, exc: DoorbirdError) -> None:
        if self.error_handler is not None:
            try:
                self.error_handler(exc)
            except Exception as e:
                logger.warning(f"Error handler raised exception processing {exc!r}: {e}")
        elif isinstance(exc, KeyFetchError):
            logger.warning(f"Unable to obtain notification key: {exc}")
        else:
            logger.debug(f"Dropping notification: {exc}")

    def _on_task_done(self, task: asyncio.Task[Optional[NotificationEvent]]) -> None:
        self.pending_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Unexpected exception processing notification: {task.exception()!r}")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        await self.wait_closed()
        return False
