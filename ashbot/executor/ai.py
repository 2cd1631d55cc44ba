"""
AI command handler.

The prompt sent to the model is the command's configured prompt
followed by context text, chosen in this order:
1. The article digest, when the prompt mentions "articles"
2. The replied-to message plus the invocation's own text
3. The invocation's text after the command name

When the invocation replies to another message, the answer is posted
as a reply to that original message so the thread stays anchored.
"""

import httpx
from loguru import logger

from ashbot.channels.base import BaseChannel
from ashbot.commands.catalog import AiCommand
from ashbot.errors import UpstreamError
from ashbot.executor.base import DispatchContext, Outcome, Replied, SentDirectly
from ashbot.providers.base import LLMProvider
from ashbot.utils.text import strip_command_prefix, text_after_tokens, truncate_text

ARTICLES_TOKEN_LIMIT = 6000
CONTEXT_TOKEN_LIMIT = 2000
ARTICLE_SEPARATOR = "\n\n---\n\n"

NO_ARTICLES = "No articles to summarize."
NO_MESSAGE = "No message to respond to."


class AiHandler:
    """Prompt a completion model with message or article context."""

    def __init__(
        self,
        provider: LLMProvider,
        channel: BaseChannel,
        client: httpx.AsyncClient,
        label: str = "> ",
        articles_url: str = "",
        command_prefix: str = "/bot",
        aliases: list[str] | tuple[str, ...] = ("@gork",),
        timeout: float = 10.0,
    ):
        self.provider = provider
        self.channel = channel
        self.client = client
        self.label = label
        self.articles_url = articles_url.rstrip("/")
        self.command_prefix = command_prefix
        self.aliases = tuple(aliases)
        self.timeout = timeout

    async def fetch_articles(self) -> str:
        """
        Fetch the article digest: every summarized article's content.

        Articles whose content cannot be fetched are skipped.

        Raises:
            UpstreamError: If the summary list cannot be fetched.
        """
        try:
            response = await self.client.get(f"{self.articles_url}/summary", timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"article summary: {e}") from e

        contents = []
        for article in data.get("summary") or []:
            article_id = article.get("id")
            if not article_id:
                continue
            try:
                content = await self.client.get(
                    f"{self.articles_url}/content/{article_id}",
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.warning(f"Failed to fetch article {article_id}: {e}")
                continue
            if content.status_code != 200:
                logger.warning(f"Bad content response {content.status_code} for article {article_id}")
                continue
            contents.append(content.text)

        return ARTICLE_SEPARATOR.join(contents)

    async def handle(self, spec: AiCommand, ctx: DispatchContext) -> Outcome:
        original_id: str | None = None

        if spec.wants_articles:
            text = await self.fetch_articles()
            if not text:
                return Replied(NO_ARTICLES)
            context_text = truncate_text(text, ARTICLES_TOKEN_LIMIT)
        else:
            if not ctx.body.strip():
                return Replied(NO_MESSAGE)

            original_text = ""
            if ctx.reply_to:
                try:
                    original = await self.channel.fetch_message(ctx.room_id, ctx.reply_to)
                except Exception as e:
                    logger.warning(f"Failed to fetch replied-to message: {e}")
                    original = None
                if original is not None and original.body:
                    original_id = original.event_id
                    original_text = original.body.strip()

            if original_text:
                suffix = strip_command_prefix(
                    ctx.body,
                    prefix=self.command_prefix,
                    command=ctx.command,
                    aliases=self.aliases,
                )
                if suffix:
                    context_text = f"respond to: {original_text}, {suffix}"
                else:
                    context_text = f"respond to: {original_text}"
            elif len(ctx.body.split()) >= 2:
                context_text = text_after_tokens(ctx.body, 2)
            else:
                context_text = ctx.body.strip()
            context_text = truncate_text(context_text, CONTEXT_TOKEN_LIMIT)

        prompt = f"{spec.prompt}\n\n{context_text}"
        response = await self.provider.complete(
            prompt,
            model=spec.model or None,
            max_tokens=spec.max_tokens or None,
        )

        if original_id:
            await self.channel.send_text(ctx.room_id, self.label + response, reply_to=original_id)
            return SentDirectly()
        return Replied(response)
