"""Chat stream reader: one conversation and transcript per session."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from helix_stream.chat.sse import ChatEventDecoder
from helix_stream.chat.turn import Transcript, TurnStateMachine
from helix_stream.client import HelixClient
from helix_stream.errors import ConcurrencyError, TransportError
from helix_stream.models.chat import ChatRequest, Complete, StreamError

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str, TurnStateMachine], None]


class ChatStreamReader:
    """Sends chat messages and streams the replies into per-session transcripts.

    Args:
        client: Transport used to open chat streams.
        on_update: Called with the session id and its turn machine after the
            user message is recorded and after every applied event.
    """

    def __init__(self, client: HelixClient, on_update: UpdateCallback | None = None) -> None:
        self._client = client
        self._on_update = on_update
        self._machines: dict[str, TurnStateMachine] = {}
        self._active_session: str | None = None
        self._turn: asyncio.Task[None] | None = None

    @property
    def is_streaming(self) -> bool:
        return self._turn is not None

    def machine(self, session_id: str) -> TurnStateMachine:
        """Turn machine for a session, created on first use."""
        if session_id not in self._machines:
            self._machines[session_id] = TurnStateMachine()
        return self._machines[session_id]

    def transcript(self, session_id: str) -> Transcript:
        return self.machine(session_id).transcript

    def conversation_id(self, session_id: str) -> str | None:
        machine = self._machines.get(session_id)
        return machine.conversation_id if machine else None

    async def send_message(
        self,
        session_id: str,
        text: str,
        metadata: dict[str, Any] | None = None,
    ) -> Transcript:
        """Send one message and stream the reply into the session transcript.

        Transport failures and server error events end the turn with an
        error entry rather than raising. An abort closes the stream at once
        and leaves the transcript as it was when the abort happened.

        Args:
            session_id: Session the conversation belongs to.
            text: User message.
            metadata: Extra context forwarded to the chat service.

        Returns:
            The session transcript after the turn.

        Raises:
            ConcurrencyError: If a turn is already streaming.
            pydantic.ValidationError: If the message is empty.
        """
        if self._turn is not None:
            logger.warning(f"Message for {session_id} rejected: a turn is already streaming")
            raise ConcurrencyError("A chat turn is already in flight")

        machine = self.machine(session_id)
        request = ChatRequest(
            message=text,
            session_id=session_id,
            conversation_id=machine.conversation_id,
            metadata=metadata or None,
        )
        machine.begin_turn(request.message)
        self._notify(session_id, machine)

        turn = asyncio.create_task(self._stream_turn(request, session_id, machine))
        self._turn = turn
        self._active_session = session_id
        try:
            await turn
        except asyncio.CancelledError:
            # abort() detaches the turn before cancelling it
            if self._turn is turn:
                raise
            logger.info(f"Chat turn for {session_id} aborted")
        finally:
            if self._turn is turn:
                self._turn = None
                self._active_session = None
        return machine.transcript

    def _is_aborted(self) -> bool:
        return self._turn is not asyncio.current_task()

    async def _stream_turn(
        self, request: ChatRequest, session_id: str, machine: TurnStateMachine
    ) -> None:
        decoder = ChatEventDecoder()
        try:
            async with self._client.open_chat_stream(request) as chunks:
                async for chunk in chunks:
                    for event in decoder.feed(chunk):
                        if self._is_aborted():
                            break
                        machine.apply(event)
                        self._notify(session_id, machine)
                    if self._is_aborted() or not machine.is_active:
                        break
        except TransportError as e:
            logger.error(f"Chat stream failed for {session_id}: {e}")
            if not self._is_aborted():
                machine.apply(StreamError(message=str(e)))
                self._notify(session_id, machine)
            return

        if self._is_aborted():
            logger.info(f"Chat turn for {session_id} aborted")
            return
        decoder.close()
        if machine.is_active:
            # Stream ended without an explicit completion event
            machine.apply(Complete())
            self._notify(session_id, machine)

    def abort(self) -> None:
        """Stop the in-flight turn, if any, and close its stream. Never raises.

        The reader is free for a new turn as soon as this returns. Called from
        inside an update callback, dispatch stops after the current event.
        """
        turn = self._turn
        if turn is None:
            return
        logger.debug(f"Aborting chat turn for {self._active_session}")
        self._turn = None
        self._active_session = None
        if turn is not asyncio.current_task():
            turn.cancel()

    def on_session_changed(self, prev: str | None, next_id: str | None) -> None:
        """Abort a turn streaming for a session other than ``next_id``."""
        if self._active_session is not None and self._active_session != next_id:
            self.abort()

    def clear(self, session_id: str) -> None:
        """Forget a session's transcript and conversation."""
        if self._active_session == session_id:
            self.abort()
        self._machines.pop(session_id, None)

    def _notify(self, session_id: str, machine: TurnStateMachine) -> None:
        if self._on_update is not None:
            self._on_update(session_id, machine)
