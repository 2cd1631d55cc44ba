"""HTTP command handler."""

import json

import httpx
from loguru import logger

from ashbot.channels.base import BaseChannel
from ashbot.commands.catalog import HttpCommand, IOKind
from ashbot.errors import NotFound, UpstreamError
from ashbot.executor.base import BackgroundTasks, DispatchContext, Outcome, Replied, SentDirectly
from ashbot.utils.media import content_type_for
from ashbot.utils.text import extract_json_path, format_posts


class HttpHandler:
    """
    Fetch a URL and turn the response into a reply.

    JSON bodies (by content type, or whenever a json_path is set) are
    parsed and the path is extracted:
    - a string is the reply, or an image URL to post for image output
    - an array is rendered as a short list of posts
    - anything else is serialized back to JSON
    A body that fails to parse as JSON is returned as plain text.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        channel: BaseChannel,
        background: BackgroundTasks,
        timeout: float = 8.0,
        linkstash_url: str = "",
    ):
        self.client = client
        self.channel = channel
        self.background = background
        self.timeout = timeout
        self.linkstash_url = linkstash_url

    async def _fetch(self, method: str, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            response = await self.client.request(method, url, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"{method} {url} timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{method} {url}: {e}") from e

        if not response.is_success:
            raise UpstreamError(f"{method} {url}: unexpected status {response.status_code}")
        return response

    async def handle(self, spec: HttpCommand, ctx: DispatchContext) -> Outcome:
        response = await self._fetch(spec.method, spec.url, spec.headers)
        body = response.text

        content_type = response.headers.get("content-type", "").lower()
        if not spec.json_path and "application/json" not in content_type:
            return Replied(body.strip())

        try:
            root = json.loads(body)
        except json.JSONDecodeError:
            logger.debug(f"Command {spec.name}: body is not JSON, replying raw")
            return Replied(body.strip())

        value = extract_json_path(root, spec.json_path)
        if isinstance(value, str):
            if spec.output_type == IOKind.IMAGE:
                self.background.spawn(
                    self._post_image(value, ctx),
                    name=f"image:{spec.name}",
                )
                return SentDirectly()
            return Replied(value.strip())
        if isinstance(value, list):
            return Replied(format_posts(value, self.linkstash_url))
        if value is not None:
            return Replied(json.dumps(value, ensure_ascii=False, separators=(",", ":")).strip())

        raise NotFound(f"no value found at path: {spec.json_path}")

    async def _post_image(self, url: str, ctx: DispatchContext) -> None:
        """Download an image and post it as a reply to the invocation."""
        try:
            response = await self._fetch("GET", url)
        except UpstreamError as e:
            logger.warning(f"Image download failed: {e}")
            return

        content_type = response.headers.get("content-type") or content_type_for(response.content)
        try:
            await self.channel.send_image(
                ctx.room_id,
                ctx.event_id,
                response.content,
                content_type,
                filename="image.jpg",
            )
        except Exception as e:
            logger.warning(f"Failed to post image from {url}: {e}")
