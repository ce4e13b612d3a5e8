from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from studio_engine.errors import StudioError
from studio_engine.llm.provider import GeneratedMedia, GenerativeProvider
from studio_engine.logging.events import EventLogger
from studio_engine.media.codec import guess_extension


@dataclass(frozen=True)
class ImageGenerationResult:
    url: str
    prompt: str
    size: str
    media: GeneratedMedia


@dataclass
class ImagePanel:
    provider: GenerativeProvider
    logger: EventLogger | None = None
    conversation_id: str = "image"
    size_label: str = "1024x1024"
    is_generating: bool = field(default=False, init=False)
    result: ImageGenerationResult | None = field(default=None, init=False)
    error: str | None = field(default=None, init=False)

    async def generate(self, prompt: str) -> ImageGenerationResult | None:
        if not prompt.strip() or self.is_generating:
            return None

        self.is_generating = True
        self.error = None
        self.result = None
        try:
            media = await self.provider.generate_image(prompt)
            self.result = ImageGenerationResult(url=media.data_uri, prompt=prompt, size=self.size_label, media=media)
            if self.logger is not None:
                self.logger.event(
                    self.conversation_id,
                    "image_generated",
                    {"prompt": prompt, "mime": media.mime_type, "bytes": len(media.data)},
                )
        except StudioError as e:
            self.error = str(e) or "Failed to generate image. Please try again."
            if self.logger is not None:
                self.logger.error(self.conversation_id, "image_failed", {"prompt": prompt, "error": self.error})
        finally:
            self.is_generating = False
        return self.result

    def save(self, directory: str | Path) -> Path | None:
        """Write the current image as studio-gen-<millis>.<ext>; None when there is nothing to save."""
        if self.result is None:
            return None
        out_dir = Path(directory).expanduser()
        out_dir.mkdir(parents=True, exist_ok=True)
        ext = guess_extension(self.result.media.mime_type, fallback=".png")
        path = out_dir / f"studio-gen-{int(time.time() * 1000)}{ext}"
        path.write_bytes(self.result.media.data)
        return path
