"""
Exec command handler.

Runs a local program with an argument template. The {input} and
{output} placeholders are replaced with temporary file paths:
- image input: the image from the message, or from the message it replies to
- text input: the command's trailing text, or the replied-to message body
- {output}: a pre-created empty file the program writes to

Every temporary file is removed when the handler returns, whatever
the outcome.
"""

import asyncio
import os
import tempfile
from pathlib import Path

from loguru import logger

from ashbot.channels.base import BaseChannel, IncomingMessage
from ashbot.commands.catalog import INPUT_PLACEHOLDER, OUTPUT_PLACEHOLDER, ExecCommand, IOKind
from ashbot.errors import UpstreamError
from ashbot.executor.base import DispatchContext, Outcome, Replied, SentDirectly
from ashbot.utils.media import detect_file_extension

NO_IMAGE = "reply to an image to use this command"
OUTPUT_CONTENT_TYPE = "image/jpeg"
OUTPUT_FILENAME = "processed.jpg"


class ExecHandler:
    """Run external programs over temporary files."""

    def __init__(self, channel: BaseChannel, tmp_dir: str | Path = "data/tmp", timeout: float = 60.0):
        self.channel = channel
        self.tmp_dir = Path(tmp_dir).expanduser()
        self.timeout = timeout

    async def find_image(self, ctx: DispatchContext) -> IncomingMessage | None:
        """Get the image message: the invocation itself, else its reply target."""
        if ctx.message.is_image:
            return ctx.message
        if ctx.reply_to:
            target = await self.channel.fetch_message(ctx.room_id, ctx.reply_to)
            if target is not None and target.is_image:
                return target
        return None

    async def _input_text(self, ctx: DispatchContext) -> str:
        if ctx.args:
            return ctx.args
        if ctx.reply_to:
            target = await self.channel.fetch_message(ctx.room_id, ctx.reply_to)
            if target is not None:
                return target.body
        return ""

    def _temp_file(self, prefix: str, suffix: str = "") -> Path:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=self.tmp_dir)
        os.close(fd)
        return Path(name)

    def _write_image(self, data: bytes, temp_files: list[Path]) -> Path:
        path = self._temp_file("exec_input_", ".tmp")
        temp_files.append(path)
        path.write_bytes(data)

        # Trust the bytes, not the upload's declared type
        renamed = path.with_suffix(detect_file_extension(path))
        path.rename(renamed)
        temp_files.append(renamed)
        return renamed

    async def handle(self, spec: ExecCommand, ctx: DispatchContext) -> Outcome:
        temp_files: list[Path] = []
        try:
            input_path: Path | None = None
            if spec.input_type == IOKind.IMAGE:
                image = await self.find_image(ctx)
                if image is None:
                    return Replied(NO_IMAGE)
                data = await self.channel.download_media(image)
                input_path = self._write_image(data, temp_files)
            elif spec.input_type == IOKind.TEXT and INPUT_PLACEHOLDER in spec.args:
                input_path = self._temp_file("exec_input_", ".txt")
                temp_files.append(input_path)
                input_path.write_text(await self._input_text(ctx), encoding="utf-8")

            output_path: Path | None = None
            args: list[str] = []
            for arg in spec.args:
                if arg == INPUT_PLACEHOLDER:
                    args.append(str(input_path) if input_path else "")
                elif arg == OUTPUT_PLACEHOLDER:
                    if output_path is None:
                        output_path = self._temp_file("exec_output_")
                        temp_files.append(output_path)
                    args.append(str(output_path))
                else:
                    args.append(arg)

            stdout = await self._run(spec.executable, args)

            if spec.output_type == IOKind.IMAGE and output_path is not None:
                data = output_path.read_bytes()
                await self.channel.send_image(
                    ctx.room_id,
                    ctx.event_id,
                    data,
                    OUTPUT_CONTENT_TYPE,
                    filename=OUTPUT_FILENAME,
                )
                return SentDirectly()
            return Replied(stdout.strip())
        finally:
            for path in temp_files:
                path.unlink(missing_ok=True)

    async def _run(self, executable: str, args: list[str]) -> str:
        """
        Run a program and return its standard output.

        Raises:
            UpstreamError: If it cannot start, times out or exits non-zero.
        """
        logger.debug(f"exec: {executable} {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise UpstreamError(f"exec {executable}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise UpstreamError(f"exec {executable} timed out after {self.timeout} seconds") from e

        if process.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace").strip()
            raise UpstreamError(
                f"exec {executable} failed: exit code {process.returncode}, stderr: {stderr_text}"
            )
        return stdout.decode("utf-8", errors="replace")
