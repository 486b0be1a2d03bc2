"""Bayeux protocol client implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from fayekit.bayeux.config import ClientConfig, validate_endpoint
from fayekit.bayeux.transport.base import (
    Transport,
    TransportError,
    MalformedResponseError,
    TimeoutError as RequestTimeoutError,
)
from fayekit.bayeux.transport.http import LongPollingTransport
from fayekit.bayeux.transport.types import TransportConfig
from fayekit.bayeux.protocol.channel import Channel, MetaChannel
from fayekit.bayeux.protocol.errors import (
    CLIENT_UNKNOWN,
    BayeuxError,
    InvalidChannelError,
    ProtocolError,
    ProtocolErrorKind,
    parse_error_string,
)
from fayekit.bayeux.protocol.extensions import Extension, ExtensionPipeline
from fayekit.bayeux.protocol.messages import (
    Advice,
    Message,
    Reconnect,
    connect_message,
    disconnect_message,
    handshake_message,
    publish_message,
    subscribe_message,
    unsubscribe_message,
)
from fayekit.bayeux.protocol.session import Session
from fayekit.bayeux.protocol.state import ClientState
from fayekit.bayeux.subscriptions.dispatcher import Dispatcher
from fayekit.bayeux.subscriptions.registry import (
    Listener,
    ListenerHandle,
    SubscriptionRegistry,
)

logger = logging.getLogger(__name__)

ErrorHook = Callable[[Exception], None]


class BayeuxClient:
    """
    Bayeux publish/subscribe client.

    Drives the handshake, keeps exactly one /meta/connect long-poll
    outstanding while connected, recovers from transport failures as the
    server advises, and delivers inbound messages to subscribed
    listeners. Subscriptions survive rehandshakes: they are resent for
    the new client ID and keep their listeners.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        config: ClientConfig | None = None,
    ):
        """
        Initialize Bayeux client.

        Args:
            transport: Transport used for every request (long-polling by default).
            config: Client configuration.
        """
        self.config = config or ClientConfig()
        self.transport = transport or LongPollingTransport(
            TransportConfig(headers=self.config.headers)
        )
        self.session = Session()
        self.registry = SubscriptionRegistry()
        self.extensions = ExtensionPipeline()
        self.dispatcher = Dispatcher(
            self.registry,
            on_reply=self._handle_reply,
            on_error=self._report_error,
        )

        self._endpoint: str | None = self.config.endpoint
        self._pending: dict[str, tuple[Message, asyncio.Future[Message]]] = {}
        self._error_hooks: list[ErrorHook] = []
        self._connect_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._needs_resubscribe = False

    @property
    def state(self) -> ClientState:
        """Current client state."""
        return self.session.state

    @property
    def client_id(self) -> str | None:
        """Client ID issued by the server, None before handshake."""
        return self.session.client_id

    @property
    def advice(self) -> Advice:
        return self.session.advice

    @property
    def is_connected(self) -> bool:
        return self.session.is_established

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def _stopping(self) -> bool:
        return self._stop_event.is_set()

    def on_state_change(
        self,
        callback: Callable[[ClientState, ClientState], None],
    ) -> None:
        """Register callback for state changes."""
        self.session.machine.on_transition(callback)

    def on_error(self, callback: ErrorHook) -> None:
        """
        Register a callback for errors that have no caller to raise to.

        Receives ListenerError for failing listeners and ProtocolError when
        the background connect loop gives up.
        """
        self._error_hooks.append(callback)

    def add_extension(self, extension: Extension) -> None:
        self.extensions.add(extension)

    def remove_extension(self, extension: Extension) -> None:
        self.extensions.remove(extension)

    async def handshake(self, endpoint: str | None = None) -> None:
        """
        Establish a session and start the connect loop.

        Transport failures are retried until the server answers. Returns
        once the session is established (or disconnect() interrupted it).

        Args:
            endpoint: Server URL, defaults to config.endpoint.

        Raises:
            ProtocolError: If the server rejects the handshake without
                advising a retry, or the client was already disconnected.
            ValueError: If no usable endpoint is configured.
        """
        if self.session.state == ClientState.DISCONNECTED:
            raise ProtocolError.not_connected("handshake after disconnect")
        if self.session.state != ClientState.UNCONNECTED:
            logger.debug(f"Handshake ignored in state {self.session.state}")
            return

        if endpoint is not None:
            self._endpoint = endpoint
        if self._endpoint is None:
            raise ValueError("endpoint is required")
        validate_endpoint(self._endpoint)

        if not self.transport.is_open():
            await self.transport.open()

        await self._handshake()

        if self.session.is_established and not self._stopping:
            self._connect_task = asyncio.create_task(
                self._connect_loop(),
                name="bayeux-connect-loop",
            )

    async def subscribe(
        self,
        channel: str | Channel,
        listener: Listener,
    ) -> ListenerHandle:
        """
        Register a listener for a channel or pattern.

        The first listener on a channel sends /meta/subscribe and waits for
        the acknowledgment when a session exists; otherwise the request is
        sent right after the handshake. Further listeners on the same
        channel are added without another request. Listeners only receive
        messages once the subscription is acknowledged.

        Returns:
            Handle to pass to unsubscribe().

        Raises:
            InvalidChannelError: If the channel is malformed or a meta-channel.
            ProtocolError: If the server rejects the subscription.
        """
        pattern = Channel.parse(channel)
        if pattern.is_meta:
            raise InvalidChannelError(channel, "cannot subscribe to a meta-channel")
        if self.session.state == ClientState.DISCONNECTED:
            raise ProtocolError.not_connected("subscribe")

        handle, needs_subscribe = self.registry.add(pattern, listener)
        if not (needs_subscribe and self.session.is_established):
            return handle

        try:
            rejected = await self._send_subscribe([pattern])
        except TransportError as e:
            logger.warning(f"Subscribe to {pattern} failed: {e}; will retry")
            return handle
        if rejected:
            raise rejected[0]
        return handle

    async def unsubscribe(self, handle: ListenerHandle) -> None:
        """
        Remove a listener.

        When the channel loses its last listener the server is sent
        /meta/unsubscribe and the subscription is deleted on
        acknowledgment. Without a session it is deleted immediately.

        Raises:
            ProtocolError: If the server rejects the unsubscribe (the
                subscription is still dropped locally).
        """
        if not self.registry.remove(handle):
            return

        channel = handle.channel
        if not self.session.is_established:
            self.registry.discard(channel)
            return

        message = unsubscribe_message(self.session.client_id, channel.name)
        try:
            replies = await self._request([message])
        except TransportError as e:
            # Left PENDING_REMOVAL; dropped at the next rehandshake
            logger.warning(f"Unsubscribe from {channel} failed: {e}")
            return

        if replies is None:
            return
        self.registry.discard(channel)
        reply = replies[0]
        if not reply.successful:
            raise ProtocolError.from_reply(ProtocolErrorKind.UNSUBSCRIBE_REJECTED, reply)

    async def publish(self, channel: str | Channel, data: Any) -> Message:
        """
        Publish data to a channel.

        Returns:
            The server's reply.

        Raises:
            InvalidChannelError: If the channel is malformed, a pattern or
                a meta-channel.
            ProtocolError: If there is no session or the server rejects it.
            TransportError: If the request could not be delivered.
        """
        target = Channel.parse(channel)
        if target.is_wildcard:
            raise InvalidChannelError(channel, "cannot publish to a wildcard pattern")
        if target.is_meta:
            raise InvalidChannelError(channel, "cannot publish to a meta-channel")
        if not self.session.is_established:
            raise ProtocolError.not_connected("publish")

        message = publish_message(self.session.client_id, target.name, data)
        replies = await self._request([message])
        if replies is None:
            raise ProtocolError.not_connected("publish")

        reply = replies[0]
        if not reply.successful:
            raise ProtocolError.from_reply(ProtocolErrorKind.PUBLISH_REJECTED, reply)
        return reply

    async def disconnect(self) -> None:
        """
        End the session.

        The client moves to DISCONNECTED immediately and issues no further
        requests apart from a best-effort /meta/disconnect. A request
        already in flight may complete but its response is discarded.
        """
        if self.session.state == ClientState.DISCONNECTED:
            return

        client_id = self.session.client_id
        self._shutdown()

        if client_id is None or not self.transport.is_open():
            logger.info("Disconnected")
            return

        message = await self.extensions.outgoing(disconnect_message(client_id))
        if message is not None:
            try:
                await self._send([message.to_dict()])
            except TransportError as e:
                logger.warning(f"Disconnect request failed: {e}")
        logger.info(f"Disconnected client {client_id}")

    async def aclose(self) -> None:
        """Disconnect, stop the connect loop and close the transport."""
        await self.disconnect()

        if self._connect_task and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
        self._connect_task = None

        await self.transport.close()

    async def _handshake(self) -> None:
        """Send /meta/handshake until it succeeds, is rejected, or we stop."""
        while not self._stopping:
            self.session.machine.transition(ClientState.HANDSHAKING)
            message = handshake_message([self.config.connection_type])

            try:
                replies = await self._request([message])
            except TransportError as e:
                if self._stopping:
                    return
                if self.session.advice.reconnect == Reconnect.NONE:
                    logger.error(f"Handshake failed and server advises no reconnect: {e}")
                    self._shutdown()
                    raise ProtocolError(
                        ProtocolErrorKind.RECONNECT_NONE,
                        f"Server advised reconnect=none after: {e}",
                    )
                delay = self._retry_delay()
                logger.warning(f"Handshake failed: {e}; retrying in {delay}s")
                await self._backoff(delay)
                continue

            if replies is None:
                return

            reply = replies[0]
            if reply.successful and reply.client_id:
                self.session.establish(str(reply.client_id))
                self._needs_resubscribe = bool(self.registry.pending())
                return

            advised = (reply.advice or {}).get("reconnect")
            if advised == Reconnect.HANDSHAKE.value:
                delay = self._retry_delay()
                logger.warning(
                    f"Handshake rejected ({reply.error}); retrying in {delay}s"
                )
                await self._backoff(delay)
                continue

            logger.error(f"Handshake rejected: {reply.error}")
            self._shutdown()
            raise ProtocolError.from_reply(ProtocolErrorKind.HANDSHAKE_REJECTED, reply)

    async def _connect_loop(self) -> None:
        """Background task keeping one /meta/connect outstanding."""
        logger.debug("Connect loop started")
        try:
            while not self._stopping and self.session.is_established:
                try:
                    if self._needs_resubscribe:
                        self._needs_resubscribe = False
                        for error in await self._send_subscribe(self.registry.pending()):
                            self._report_error(error)
                    replies = await self._request(
                        [connect_message(self.session.client_id, self.config.connection_type)],
                        timeout=self.session.advice.timeout + self.config.request_timeout,
                    )
                except TransportError as e:
                    if self._stopping:
                        break
                    await self._recover(e)
                    continue

                if replies is None:
                    break

                reply = replies[0]
                if reply.successful:
                    if self.session.state == ClientState.RECONNECTING:
                        self.session.machine.transition(ClientState.CONNECTED)
                    continue

                code, _, text = parse_error_string(reply.error)
                unknown = code == CLIENT_UNKNOWN or "unknown client" in text.lower()
                if unknown and self.session.advice.reconnect != Reconnect.NONE:
                    logger.info(f"Server forgot client {self.session.client_id}")
                    await self._rehandshake()
                    continue
                await self._recover(BayeuxError(f"connect rejected: {reply.error}"))

        except asyncio.CancelledError:
            pass
        except BayeuxError as e:
            self._report_error(e)
        except Exception as e:
            logger.error(f"Connect loop error: {e}")
            self._shutdown()
            self._report_error(e)
        finally:
            logger.debug("Connect loop stopped")

    async def _recover(self, error: Exception) -> None:
        """Apply the server's reconnect advice after a failed connect."""
        reconnect = self.session.advice.reconnect

        if reconnect == Reconnect.NONE:
            logger.error(f"Connect failed and server advises no reconnect: {error}")
            self._shutdown()
            raise ProtocolError(
                ProtocolErrorKind.RECONNECT_NONE,
                f"Server advised reconnect=none after: {error}",
            )

        if reconnect == Reconnect.HANDSHAKE:
            logger.info(f"Connect failed ({error}); rehandshaking")
            await self._rehandshake()
            return

        self.session.machine.transition(ClientState.RECONNECTING)
        delay = self._retry_delay()
        logger.warning(f"Connect failed: {error}; retrying in {delay}s")
        await self._backoff(delay)

    async def _rehandshake(self) -> None:
        """Drop the client ID and handshake again, keeping listeners."""
        self.session.clear()
        self.registry.reset()
        await self._handshake()

    async def _send_subscribe(self, channels: list[Channel]) -> list[ProtocolError]:
        """
        Send one /meta/subscribe per channel in a single batch.

        Returns:
            Errors for the channels the server rejected; those
            subscriptions are dropped.

        Raises:
            TransportError: If the batch could not be delivered.
        """
        if not channels:
            return []

        client_id = self.session.client_id
        messages = [subscribe_message(client_id, channel.name) for channel in channels]
        self.registry.mark_subscribing(channels)
        try:
            replies = await self._request(messages)
        except TransportError:
            if self.session.client_id == client_id:
                # Resent by the connect loop on its next pass
                self.registry.requeue(channels)
                self._needs_resubscribe = True
            raise

        if replies is None:
            return []
        if self.session.client_id != client_id:
            # A rehandshake reset these; the new session subscribes again
            logger.debug(f"Ignoring subscribe replies for old client {client_id}")
            return []

        rejected: list[ProtocolError] = []
        for channel, reply in zip(channels, replies):
            if reply.successful:
                logger.info(f"Subscribed to {channel}")
                continue
            self.registry.reject(channel)
            logger.warning(f"Subscription to {channel} rejected: {reply.error}")
            rejected.append(
                ProtocolError.from_reply(ProtocolErrorKind.SUBSCRIBE_REJECTED, reply)
            )
        return rejected

    async def _request(
        self,
        messages: list[Message],
        timeout: float | None = None,
    ) -> list[Message] | None:
        """
        Send messages in one batch and wait for their replies.

        Every message in the response batch is dispatched, so deliveries
        riding along with a reply reach their listeners.

        Returns:
            Replies aligned with ``messages``, or None when the client was
            disconnected while the request was in flight.

        Raises:
            TransportError: On transport failure or a missing reply.
        """
        loop = asyncio.get_running_loop()
        results: dict[str, Message] = {}
        futures: dict[str, asyncio.Future[Message]] = {}
        wire: list[dict[str, Any]] = []

        for message in messages:
            processed = await self.extensions.outgoing(message)
            if processed is None:
                results[message.id] = Message(
                    channel=message.channel,
                    id=message.id,
                    successful=False,
                    error="Message dropped by extension",
                )
                continue
            future: asyncio.Future[Message] = loop.create_future()
            self._pending[message.id] = (message, future)
            futures[message.id] = future
            wire.append(processed.to_dict())

        try:
            if wire:
                raw = await self._send(wire, timeout)
                if self._stopping:
                    logger.debug("Discarding response received after disconnect")
                    return None
                await self.dispatcher.dispatch(await self._decode(raw))

            for message_id, future in futures.items():
                if not future.done():
                    raise MalformedResponseError(f"No reply to message id={message_id}")
                results[message_id] = future.result()
            return [results[m.id] for m in messages]

        finally:
            for message_id in futures:
                self._pending.pop(message_id, None)

    async def _send(
        self,
        wire: list[dict[str, Any]],
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Hand a batch to the transport with a hard deadline."""
        effective_timeout = timeout if timeout is not None else self.config.request_timeout
        logger.debug(f"Sending {[m.get('channel') for m in wire]}")
        try:
            return await asyncio.wait_for(
                self.transport.send(self._endpoint, wire, timeout=effective_timeout),
                timeout=effective_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Request timed out after {effective_timeout}s", cause=e
            )

    async def _decode(self, raw: list[dict[str, Any]]) -> list[Message]:
        batch: list[Message] = []
        for item in raw:
            message = await self.extensions.incoming(Message.from_dict(item))
            if message is not None:
                batch.append(message)
        return batch

    def _handle_reply(self, reply: Message) -> None:
        """Apply advice from a reply and complete the matching request."""
        self.session.update_advice(reply.advice)

        entry = self._match_pending(reply)
        if entry is None:
            logger.debug(f"No pending request for {reply}")
            return

        request, future = entry
        if (
            request.channel == MetaChannel.SUBSCRIBE
            and reply.successful
            and request.client_id == self.session.client_id
        ):
            # Active before the rest of the batch is dispatched
            self.registry.activate(request.subscription)

        if not future.done():
            future.set_result(reply)

    def _match_pending(
        self, reply: Message
    ) -> tuple[Message, asyncio.Future[Message]] | None:
        if reply.id is not None:
            return self._pending.get(reply.id)

        # Replies without id go to the oldest open request on the channel
        for request, future in self._pending.values():
            if request.channel == reply.channel and not future.done():
                return request, future
        return None

    def _retry_delay(self) -> float:
        interval = self.session.advice.interval
        return interval if interval > 0 else self.config.retry_interval

    async def _backoff(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early on disconnect()."""
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _shutdown(self) -> None:
        """Enter DISCONNECTED and forget all session state."""
        self._stop_event.set()
        self.session.machine.transition(ClientState.DISCONNECTED)
        self.session.clear()
        self.registry.clear()
        self._needs_resubscribe = False

    def _report_error(self, error: Exception) -> None:
        for hook in list(self._error_hooks):
            try:
                hook(error)
            except Exception:
                logger.exception("Error hook failed")

    async def __aenter__(self) -> "BayeuxClient":
        """Async context manager entry."""
        await self.handshake()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.aclose()
