"""Per-popup session coordinator.

A coordinator resolves which tab its popup belongs to, keeps the popup's view of
room membership in line with the shared room store, and runs the create, join
and exit actions. The store is the source of truth: membership is always
re-derived from the latest observed mapping rather than from this instance's
own writes.
"""
import asyncio
import contextlib
import logging
from typing import Callable, List, Optional

from .background import BackgroundClient
from .detection import detect_video
from .errors import InvalidStateError, TransportError
from .models.session import DetectionStatus, SessionState, SessionView
from .rooms import TabRoomMap, delete_room, parse_rooms, store_room, validate_room_code
from .storage import RoomStore

logger = logging.getLogger(__name__)

Listener = Callable[[SessionView], None]


class SessionCoordinator:
    """State machine behind one popup instance."""

    def __init__(self, background: BackgroundClient, store: RoomStore, write_retries: int = 5):
        self.background = background
        self.store = store
        self.write_retries = write_retries

        self.tab_id: Optional[int] = None
        self.state = SessionState.UNRESOLVED
        self.detection_status = DetectionStatus.NONE
        self.error_message: Optional[str] = None

        self._listeners: List[Listener] = []
        self._watch_task: Optional[asyncio.Task] = None
        # Set while a create, join or exit is updating the store
        self._busy = False
        self._detection_round = 0

    async def __aenter__(self) -> "SessionCoordinator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def rooms(self) -> TabRoomMap:
        return parse_rooms(self.store.value)

    @property
    def room_code(self) -> Optional[str]:
        if self.tab_id is None:
            return None
        return self.rooms.get(self.tab_id)

    @property
    def in_room(self) -> bool:
        return self.state is SessionState.IN_ROOM

    def view(self) -> SessionView:
        return SessionView(
            tab_id=self.tab_id,
            state=self.state,
            room_code=self.room_code if self.in_room else None,
            detection_status=self.detection_status,
            error_message=self.error_message,
        )

    def add_listener(self, listener: Listener) -> None:
        """Call ``listener`` with the new view after every change."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        view = self.view()
        for listener in self._listeners:
            listener(view)

    # Lifecycle

    async def start(self) -> None:
        """Subscribe to the store and resolve the tab id.

        If the tab id cannot be resolved the session stays unresolved.
        """
        subscribed = asyncio.Event()
        self._watch_task = asyncio.create_task(self._watch(subscribed))
        await subscribed.wait()

        try:
            await self.store.read()
            tab_id = await self.background.get_tab_id()
        except TransportError as e:
            logger.warning(f"Could not resolve tab: {e}")
            return

        logger.info(f"Popup attached to tab {tab_id}")
        self.tab_id = tab_id
        self._derive_membership()

    async def close(self) -> None:
        if self._watch_task is None:
            return
        self._watch_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._watch_task
        self._watch_task = None

    async def _watch(self, subscribed: asyncio.Event) -> None:
        try:
            async with self.store.subscribe() as updates:
                subscribed.set()
                async for _ in updates:
                    self._derive_membership()
        except TransportError as e:
            logger.warning(f"Room store subscription ended: {e}")
        finally:
            subscribed.set()

    def _derive_membership(self) -> None:
        if self.tab_id is None:
            return

        if self.tab_id in self.rooms:
            self.state = SessionState.IN_ROOM
        else:
            if self.state is SessionState.IN_ROOM:
                logger.info(f"Tab {self.tab_id} is no longer in a room")
                self._reset_detection()
            self.state = SessionState.NO_ROOM
        self._notify()

    # Actions

    @contextlib.contextmanager
    def _action(self, state: SessionState, action: str):
        """Run one action at a time, and only from ``state``."""
        if self._busy:
            raise InvalidStateError(f"Cannot {action} while another action is running")
        if self.state is not state:
            raise InvalidStateError(f"Cannot {action} while {self.state.value}")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    async def create_room(self) -> Optional[str]:
        """Create a room and put this tab in it.

        Returns the room code, or None if the background could not be reached.
        """
        with self._action(SessionState.NO_ROOM, "create a room"):
            try:
                code = await self.background.create_room()
            except TransportError as e:
                logger.warning(f"Room creation failed: {e}")
                return None

            if not await self._enter_room(code):
                return None

        await self._detect_if_in_room()
        return code

    async def join_room(self, code: str) -> Optional[str]:
        """Put this tab in the room ``code``.

        Raises:
            ValidationError: if the code is malformed; nothing is written
        """
        with self._action(SessionState.NO_ROOM, "join a room"):
            room = validate_room_code(code)
            if not await self._enter_room(room):
                return None

        await self._detect_if_in_room()
        return room

    async def exit_room(self) -> None:
        """Take this tab out of its room."""
        with self._action(SessionState.IN_ROOM, "exit a room"):
            tab_id = self.tab_id
            try:
                await self._update_rooms(lambda raw: delete_room(raw, tab_id))
            except TransportError as e:
                logger.warning(f"Could not leave room: {e}")
                return

            logger.info(f"Tab {tab_id} left its room")
            self._derive_membership()

    async def _enter_room(self, room: str) -> bool:
        tab_id = self.tab_id
        try:
            await self._update_rooms(lambda raw: store_room(raw, {tab_id: room}))
        except TransportError as e:
            logger.warning(f"Could not store room {room}: {e}")
            return False

        logger.info(f"Tab {tab_id} is in room {room}")
        self._derive_membership()
        return True

    async def _update_rooms(self, mutate: Callable[[Optional[str]], str]) -> None:
        """Apply ``mutate`` to the freshest stored mapping.

        Each attempt is a compare-and-swap against the value just read. When
        other writers keep winning, the last merge is written unconditionally.
        """
        for attempt in range(1, self.write_retries + 1):
            current = await self.store.read()
            if await self.store.write(mutate(current), expected=current):
                return
            logger.debug(f"Room mapping changed during update (attempt {attempt}/{self.write_retries})")

        logger.warning("Room mapping kept changing, overwriting with latest merge")
        await self.store.write(mutate(await self.store.read()))

    # Detection

    def _reset_detection(self) -> None:
        self._detection_round += 1
        self.detection_status = DetectionStatus.NONE
        self.error_message = None

    async def _detect_if_in_room(self) -> None:
        if not self.in_room:
            logger.info(f"Tab {self.tab_id} left its room before detection")
            return
        await self._detect()

    async def _detect(self) -> None:
        self._detection_round += 1
        detection_round = self._detection_round
        self.detection_status = DetectionStatus.DETECTING
        self.error_message = None
        self._notify()

        response = await detect_video(self.background, self.tab_id)
        if detection_round != self._detection_round or not self.in_room:
            return

        if response.status == "success":
            self.detection_status = DetectionStatus.DETECTED
        else:
            self.detection_status = DetectionStatus.ERROR
            self.error_message = response.message
        self._notify()
