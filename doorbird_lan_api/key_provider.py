#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
NotificationKeyProvider -- Supplies the ChaCha20 key for a notification packet.

  Version 1: The key is stretched from the first 5 characters of the device password
             with Argon2i, using the salt and the CPU/memory costs carried in the packet.
             Stretching runs in the event loop's default
             executor and never blocks datagram intake.

  Version 2: The key is the NOTIFICATION_ENCRYPTION_KEY returned by the Control API
             when a session is initialized. It is fetched once, on the first version 2
             packet, and cached for the life of the provider. Concurrent cache misses
             share one in-flight fetch.
"""

from __future__ import annotations

import asyncio

import nacl.pwhash

from .internal_types import *
from .pkg_logging import logger
from .exceptions import KeyDerivationError, KeyFetchError
from .constants import KEY_SIZE, PASSWORD_PREFIX_LENGTH
from .control_api import DoorbirdClient
from .notification_packet import NotificationPacket, NotificationPacketV1, NotificationPacketV2

SessionFetcher = Callable[[], Awaitable[Mapping[str, Any]]]
"""An async callable that initializes a Control API session and returns the decoded
   JSON response."""

def client_session_fetcher(client: DoorbirdClient) -> SessionFetcher:
    """Returns a SessionFetcher that calls client.initialize_session() in an executor."""
    async def fetch_session() -> Mapping[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, client.initialize_session)
    return fetch_session

def extract_notification_key(session_response: Mapping[str, Any]) -> bytes:
    """Extracts the version 2 notification key from an initialize_session() response.

    The key field is used as raw UTF-8 bytes with no further decoding; ChaCha20
    consumes the first KEY_SIZE bytes of it.

    Raises:
        KeyFetchError: The response does not carry a usable key.
    """
    try:
        bha = session_response['BHA']
        text_key = bha['NOTIFICATION_ENCRYPTION_KEY']
    except (KeyError, TypeError) as e:
        raise KeyFetchError(f"Session response has no NOTIFICATION_ENCRYPTION_KEY: {e!r}") from e
    if not isinstance(text_key, str):
        raise KeyFetchError(f"NOTIFICATION_ENCRYPTION_KEY must be a string, got {type(text_key).__name__}")
    key = text_key.encode('utf-8')
    if len(key) < KEY_SIZE:
        raise KeyFetchError(f"NOTIFICATION_ENCRYPTION_KEY must be at least {KEY_SIZE} bytes, got {len(key)}")
    return key[:KEY_SIZE]

def stretch_password(password: str, salt: bytes, opslimit: int, memlimit: int) -> bytes:
    """Derives a version 1 notification key (blocking). memlimit is in bytes."""
    return nacl.pwhash.argon2i.kdf(
        KEY_SIZE,
        password[:PASSWORD_PREFIX_LENGTH].encode('utf-8'),
        salt,
        opslimit=opslimit,
        memlimit=memlimit,
      )

class NotificationKeyProvider:
    password: str
    session_fetcher: Optional[SessionFetcher]

    session_fetch_count: int = 0
    """The number of Control API session fetches started by this provider."""

    _session_key: Optional[bytes] = None
    _session_key_task: Optional[asyncio.Task[bytes]] = None

    def __init__(self, password: str, session_fetcher: Optional[SessionFetcher]=None):
        self.password = password
        self.session_fetcher = session_fetcher

    async def key_for(self, packet: NotificationPacket) -> bytes:
        """Returns the decryption key for a notification packet.

        Raises:
            KeyDerivationError: Argon2i stretching failed (version 1).
            KeyFetchError:      The session key could not be fetched (version 2).
        """
        if isinstance(packet, NotificationPacketV1):
            return await self.stretched_key(packet)
        assert isinstance(packet, NotificationPacketV2)
        return await self.session_key()

    async def stretched_key(self, packet: NotificationPacketV1) -> bytes:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                stretch_password,
                self.password,
                packet.salt,
                packet.opslimit,
                packet.memlimit,
              )
        except Exception as e:
            raise KeyDerivationError(
                f"Argon2i stretching failed (opslimit={packet.opslimit}, memlimit={packet.memlimit}): {e}"
              ) from e

    @property
    def has_session_key(self) -> bool:
        return self._session_key is not None

    async def session_key(self) -> bytes:
        """Returns the cached version 2 key, fetching it first if necessary.

        A failed fetch is not cached; the next caller starts a new one.
        """
        if self._session_key is not None:
            return self._session_key
        if self._session_key_task is None:
            if self.session_fetcher is None:
                raise KeyFetchError("Version 2 notification received but no Control API session fetcher is configured")
            self.session_fetch_count += 1
            self._session_key_task = asyncio.create_task(self._fetch_session_key(self.session_fetcher))
        # shield so that one cancelled waiter does not abort the fetch for the others
        return await asyncio.shield(self._session_key_task)

    def invalidate_session_key(self) -> None:
        """Forgets the cached version 2 key; the next version 2 packet fetches a new one."""
        self._session_key = None

    async def _fetch_session_key(self, session_fetcher: SessionFetcher) -> bytes:
        try:
            logger.debug("Fetching notification encryption key from Control API session")
            try:
                response = await session_fetcher()
            except Exception as e:
                raise KeyFetchError(f"Unable to initialize Control API session: {e}") from e
            key = extract_notification_key(response)
            self._session_key = key
            return key
        finally:
            self._session_key_task = None
