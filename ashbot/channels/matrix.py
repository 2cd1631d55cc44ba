"""
Matrix channel integration for ashbot.

Uses matrix-nio for:
- Access token, stored credential or password authentication
- Optional E2EE (Megolm room events and encrypted attachments)
- Sync loop with a one-time ready signal after the first sync
- Replies, image uploads, event fetches and member lookups
"""

import asyncio
import io
from typing import Any, Awaitable, Callable

from loguru import logger
from nio import (
    AsyncClient,
    AsyncClientConfig,
    DownloadError,
    Event,
    JoinedMembersError,
    LoginResponse,
    MatrixRoom,
    MegolmEvent,
    RoomEncryptedImage,
    RoomGetEventError,
    RoomMessageImage,
    RoomMessageText,
    RoomSendResponse,
    SyncError,
    UploadResponse,
)
from nio.crypto import ENCRYPTION_ENABLED
from nio.crypto.attachments import decrypt_attachment

from ashbot.channels.base import BaseChannel, IncomingMessage
from ashbot.config.schema import MatrixConfig
from ashbot.errors import ConfigError, NotFound, UpstreamError
from ashbot.storage.store import MessageStore

MessageCallback = Callable[[IncomingMessage], Awaitable[Any]]
ReadyCallback = Callable[[], Any]

SYNC_TOKEN_KEY = "sync_token"
ACCESS_TOKEN_KEY = "access_token"
DEVICE_ID_KEY = "device_id"
RETRY_DELAY_SECONDS = 5


def reply_target(content: dict[str, Any]) -> str | None:
    """Get the event ID a message content replies to."""
    relates = content.get("m.relates_to") or {}
    in_reply_to = relates.get("m.in_reply_to") or {}
    return in_reply_to.get("event_id") or None


def to_incoming(room_id: str, event: Event) -> IncomingMessage | None:
    """Convert a nio room event into an IncomingMessage, if it is a message."""
    source = event.source or {}
    content = source.get("content") or {}
    common = {
        "room_id": room_id,
        "event_id": event.event_id,
        "sender": event.sender,
        "timestamp_ms": event.server_timestamp,
        "reply_to": reply_target(content),
        "raw": content,
    }

    if isinstance(event, RoomMessageText):
        return IncomingMessage(body=event.body, msgtype="m.text", **common)
    if isinstance(event, RoomMessageImage):
        return IncomingMessage(body=event.body, msgtype="m.image", media_url=event.url, **common)
    if isinstance(event, RoomEncryptedImage):
        return IncomingMessage(
            body=event.body,
            msgtype="m.image",
            media_url=event.url,
            media_file=content.get("file"),
            **common,
        )
    return None


class MatrixChannel(BaseChannel):
    """
    Matrix channel implementation using matrix-nio.

    Configuration (via MatrixConfig):
    - homeserver: Matrix homeserver URL (e.g., https://matrix.org)
    - user_id: Bot user ID (e.g., @ash:matrix.org)
    - access_token: Access token, otherwise stored credentials or password
    - password: Password for the first login
    - device_id: Device ID for E2EE session persistence
    - enable_encryption: Enable E2EE support
    """

    name = "matrix"

    def __init__(self, config: MatrixConfig, store: MessageStore):
        """
        Initialize Matrix channel.

        Args:
            config: Matrix configuration.
            store: Message store; its meta table keeps credentials and the sync token.
        """
        self.config = config
        self.store = store
        self.encryption = config.enable_encryption and ENCRYPTION_ENABLED
        if config.enable_encryption and not ENCRYPTION_ENABLED:
            logger.warning("E2EE requested but matrix-nio encryption support is not installed")

        self.on_message: MessageCallback | None = None
        self.on_ready: ReadyCallback | None = None

        self._client: AsyncClient | None = None
        self._running = False
        self._synced_once = False

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            raise UpstreamError("matrix client is not started")
        return self._client

    def _create_client(self) -> AsyncClient:
        """Create and configure the Matrix client."""
        client_config = AsyncClientConfig(
            encryption_enabled=self.encryption,
            store_sync_tokens=False,
        )
        return AsyncClient(
            self.config.homeserver,
            self.config.user_id,
            device_id=self.config.device_id or None,
            store_path=self.config.store_path if self.encryption else "",
            config=client_config,
        )

    async def _login(self) -> None:
        """
        Log in with the configured token, stored credentials or password.

        Raises:
            ConfigError: If no method is available or login fails.
        """
        access_token = self.config.access_token or await self.store.get_meta(ACCESS_TOKEN_KEY)
        device_id = self.config.device_id or await self.store.get_meta(DEVICE_ID_KEY)

        if access_token and device_id:
            self.client.restore_login(self.config.user_id, device_id, access_token)
            response = await self.client.whoami()
            if getattr(response, "user_id", None):
                logger.info(f"Matrix logged in as {response.user_id} (device {device_id})")
                return
            logger.warning("Stored Matrix credentials rejected, trying password")

        if not self.config.password:
            raise ConfigError("no access_token or password provided for Matrix")

        response = await self.client.login(self.config.password, device_name=self.config.device_name)
        if not isinstance(response, LoginResponse):
            raise ConfigError(f"Matrix login failed: {response}")

        logger.info(f"Matrix logged in as {response.user_id} (device {response.device_id})")
        await self.store.set_meta(ACCESS_TOKEN_KEY, response.access_token)
        await self.store.set_meta(DEVICE_ID_KEY, response.device_id)

    def _setup_callbacks(self) -> None:
        """Set up event callbacks."""

        async def message_callback(room: MatrixRoom, event: Event):
            message = to_incoming(room.room_id, event)
            if message is None or self.on_message is None:
                return
            try:
                await self.on_message(message)
            except Exception as e:
                logger.error(f"Failed to handle {event.event_id}: {e}")

        async def undecryptable_callback(room: MatrixRoom, event: MegolmEvent):
            logger.warning(f"Could not decrypt {event.event_id} in {room.room_id} (session {event.session_id})")

        self.client.add_event_callback(
            message_callback,
            (RoomMessageText, RoomMessageImage, RoomEncryptedImage),
        )
        self.client.add_event_callback(undecryptable_callback, MegolmEvent)

    async def start(self) -> None:
        """Log in and start the sync loop."""
        logger.info(f"Starting Matrix channel for {self.config.user_id}")
        self._client = self._create_client()
        await self._login()

        if self.encryption and self.client.should_upload_keys:
            await self.client.keys_upload()

        self._running = True
        self._setup_callbacks()
        await self._sync_loop()

    async def _sync_loop(self) -> None:
        """Main sync loop for receiving events."""
        since = await self.store.get_meta(SYNC_TOKEN_KEY) or None
        while self._running:
            try:
                response = await self.client.sync(
                    timeout=self.config.sync_timeout_ms,
                    since=since,
                    full_state=since is None,
                )
                if isinstance(response, SyncError):
                    logger.error(f"Matrix sync error: {response.message}")
                    await asyncio.sleep(RETRY_DELAY_SECONDS)
                    continue

                since = response.next_batch
                await self.store.set_meta(SYNC_TOKEN_KEY, since)
                await self._after_sync()

            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._running:
                    logger.error(f"Matrix sync exception: {e}")
                    await asyncio.sleep(RETRY_DELAY_SECONDS)

    async def _after_sync(self) -> None:
        if self.encryption:
            if self.client.should_upload_keys:
                await self.client.keys_upload()
            if self.client.should_query_keys:
                await self.client.keys_query()

        if not self._synced_once:
            self._synced_once = True
            logger.info("Initial sync complete")
            if self.on_ready is not None:
                self.on_ready()

    async def stop(self) -> None:
        """Stop the Matrix channel."""
        logger.info("Stopping Matrix channel")
        self._running = False
        if self._client:
            await self._client.close()
            self._client = None

    def _room_encrypted(self, room_id: str) -> bool:
        room = self.client.rooms.get(room_id)
        return bool(room and room.encrypted)

    async def _send(self, room_id: str, content: dict[str, Any]) -> str:
        response = await self.client.room_send(
            room_id=room_id,
            message_type="m.room.message",
            content=content,
            ignore_unverified_devices=True,
        )
        if not isinstance(response, RoomSendResponse):
            raise UpstreamError(f"send to {room_id} failed: {response}")
        return response.event_id

    async def send_text(
        self,
        room_id: str,
        body: str,
        reply_to: str | None = None,
        formatted_body: str | None = None,
    ) -> str:
        content: dict[str, Any] = {"msgtype": "m.text", "body": body}
        if formatted_body:
            content["format"] = "org.matrix.custom.html"
            content["formatted_body"] = formatted_body
        if reply_to:
            content["m.relates_to"] = {"m.in_reply_to": {"event_id": reply_to}}
        return await self._send(room_id, content)

    async def send_image(
        self,
        room_id: str,
        reply_to: str | None,
        data: bytes,
        content_type: str,
        filename: str = "image.jpg",
    ) -> str:
        encrypt = self._room_encrypted(room_id)
        response, keys = await self.client.upload(
            io.BytesIO(data),
            content_type=content_type,
            filename=filename,
            encrypt=encrypt,
            filesize=len(data),
        )
        if not isinstance(response, UploadResponse):
            raise UpstreamError(f"upload failed: {response}")

        content: dict[str, Any] = {
            "msgtype": "m.image",
            "body": filename,
            "info": {"mimetype": content_type, "size": len(data)},
        }
        if encrypt and keys:
            content["file"] = {**keys, "url": response.content_uri}
        else:
            content["url"] = response.content_uri
        if reply_to:
            content["m.relates_to"] = {"m.in_reply_to": {"event_id": reply_to}}
        return await self._send(room_id, content)

    async def fetch_message(self, room_id: str, event_id: str) -> IncomingMessage | None:
        response = await self.client.room_get_event(room_id, event_id)
        if isinstance(response, RoomGetEventError):
            raise UpstreamError(f"fetch {event_id}: {response.message}")

        event = response.event
        if isinstance(event, MegolmEvent):
            try:
                event = self.client.decrypt_event(event)
            except Exception as e:
                raise UpstreamError(f"decrypt {event_id}: {e}") from e
        return to_incoming(room_id, event)

    async def download_media(self, message: IncomingMessage) -> bytes:
        url = message.media_file["url"] if message.media_file else message.media_url
        if not url:
            raise NotFound("message has no media")

        response = await self.client.download(mxc=url)
        if isinstance(response, DownloadError):
            raise UpstreamError(f"download {url}: {response.message}")

        if not message.media_file:
            return response.body
        file_info = message.media_file
        try:
            return decrypt_attachment(
                response.body,
                file_info["key"]["k"],
                file_info["hashes"]["sha256"],
                file_info["iv"],
            )
        except (KeyError, ValueError) as e:
            raise UpstreamError(f"decrypt attachment {url}: {e}") from e

    async def room_members(self, room_id: str) -> dict[str, str]:
        response = await self.client.joined_members(room_id)
        if isinstance(response, JoinedMembersError):
            raise UpstreamError(f"members of {room_id}: {response.message}")
        return {
            member.user_id: member.display_name
            for member in response.members
            if member.display_name
        }
