# slidefy/infrastructure/sources/image_loader.py
import asyncio
import logging
from typing import List, Optional, Sequence, Union

import aiohttp

from slidefy.domain import codec
from slidefy.domain.errors import SlidefyError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


def decode_base64_images(sources: Sequence[str]) -> List[Optional[bytes]]:
    """Decodes base64 (or data URL) uploads; entries that fail become None."""
    images = []
    for i, src in enumerate(sources):
        try:
            images.append(codec.decode(codec.strip_data_url(src)))
        except SlidefyError as e:
            logger.warning(f"Gagal decode gambar pengguna #{i + 1}: {e.message}")
            images.append(None)
    return images


def coerce_image_payloads(payloads: Sequence[Union[List[int], bytes, str]]) -> List[Optional[bytes]]:
    """Accepts the plugin UI's byte arrays as well as base64 strings."""
    images = []
    for i, payload in enumerate(payloads):
        if isinstance(payload, str):
            images.extend(decode_base64_images([payload]))
            continue
        try:
            images.append(bytes(payload))
        except (ValueError, TypeError):
            logger.warning(f"Gambar pengguna #{i + 1} bukan byte array yang valid.")
            images.append(None)
    return images


async def _load_url_async(src: str, session: aiohttp.ClientSession, timeout: int) -> Optional[bytes]:
    try:
        async with session.get(src, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            response.raise_for_status()
            return await response.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"Gagal memuat gambar dari sumber '{src[:70]}...': {type(e).__name__}")
        return None


async def load_urls_async(sources: Sequence[str], timeout: int = REQUEST_TIMEOUT) -> List[Optional[bytes]]:
    urls = [src for src in sources if src.startswith(("http://", "https://"))]
    if len(urls) != len(sources):
        logger.warning(f"{len(sources) - len(urls)} sumber gambar bukan URL http(s) dan diabaikan.")
    async with aiohttp.ClientSession() as session:
        tasks = [
            _load_url_async(src, session, timeout) if src.startswith(("http://", "https://")) else _skip()
            for src in sources
        ]
        return list(await asyncio.gather(*tasks))


async def _skip() -> None:
    return None
