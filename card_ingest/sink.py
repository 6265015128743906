"""Upload/upsert sink: card images into asset storage, records into the content store."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from card_ingest.config import ImageConfig
from card_ingest.errors import UploadError
from card_ingest.models import CardRecord, Partition
from card_ingest.throttle import RateLimiter

logger = logging.getLogger(__name__)

BACKOFF_BASE = 1.0  # seconds; doubles per attempt
USER_AGENT = "card-ingest/0.1"


class ContentStore(Protocol):
    async def upsert(self, row: Dict[str, Any], conflict_key: str) -> None: ...

    async def query(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]: ...


class AssetStorage(Protocol):
    async def upload(self, data: bytes, key: str) -> str:
        """Store ``data`` under ``key`` (overwriting) and return its public URL."""
        ...

    async def list_keys(self, prefix: str) -> Set[str]: ...

    def public_url(self, key: str) -> str: ...


def asset_prefix(partition: Partition) -> str:
    return f"{partition.series_code}/{partition.language}"


def asset_key(record: CardRecord) -> str:
    return f"{asset_prefix(record.partition)}/{record.storage_number}.webp"


def record_row(record: CardRecord) -> Dict[str, Any]:
    """Row for the content store. A missing image URL leaves the stored one untouched."""
    row = {
        "series_code": record.series_code,
        "number": record.storage_number,
        "language": record.language,
        "name": record.name,
        "rarity": record.rarity,
        "finish": record.finish.value,
        "attributes": record.attributes,
    }
    if record.image_url:
        row["image_url"] = record.image_url
    return row


def to_webp(data: bytes, image: ImageConfig) -> bytes:
    """Resize to the configured card size (cropping to fit) and encode as WebP."""
    try:
        with Image.open(io.BytesIO(data)) as src:
            src.load()
            if src.mode not in ("RGB", "RGBA"):
                src = src.convert("RGBA")
            fitted = ImageOps.fit(src, (image.width, image.height), Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError) as exc:
        raise UploadError(f"Not a decodable image: {exc}") from exc
    out = io.BytesIO()
    fitted.save(out, format="WEBP", quality=image.quality)
    return out.getvalue()


class ImageFetcher:
    """Downloads source images with retry and converts them for storage."""

    def __init__(
        self,
        image: ImageConfig,
        limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._image = image
        self._limiter = limiter or RateLimiter(0)
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=60.0,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def fetch(self, url: str) -> bytes:
        """Download ``url`` as WebP bytes. Raises UploadError after the last retry."""
        retries = self._image.retries
        for attempt in range(1, retries + 1):
            try:
                await self._limiter.wait()
                resp = await self._get_client().get(url)
                resp.raise_for_status()
                return to_webp(resp.content, self._image)
            except httpx.HTTPError as exc:
                if attempt < retries:
                    delay = BACKOFF_BASE * (2 ** (attempt - 1))
                    logger.debug(
                        "Retry %d/%d for %s (%.1fs): %s", attempt, retries, url, delay, exc
                    )
                    await self._sleep(delay)
                else:
                    raise UploadError(
                        f"Download of {url} failed after {retries} attempts: {exc}"
                    ) from exc
        raise UploadError(f"Download of {url} failed")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()


class UpsertSink:
    """Idempotent writes keyed by (series, number, language).

    Images already present in storage are not uploaded again; records are
    always upserted, which is a no-op for unchanged rows.
    """

    def __init__(
        self,
        store: ContentStore,
        assets: AssetStorage,
        fetcher: ImageFetcher,
        conflict_key: str = "series_code,number,language",
        upload_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._store = store
        self._assets = assets
        self._fetcher = fetcher
        self._conflict_key = conflict_key
        self._upload_limiter = upload_limiter or RateLimiter(0)
        self._stored: Dict[str, Set[str]] = {}
        self.uploads = 0

    async def stored_keys(self, partition: Partition) -> Set[str]:
        """Asset keys already present for a partition (listed once, then tracked)."""
        prefix = asset_prefix(partition)
        if prefix not in self._stored:
            keys = await self._assets.list_keys(prefix)
            self._stored[prefix] = set(keys)
            logger.debug("%s: %d stored image(s)", partition, len(keys))
        return self._stored[prefix]

    async def missing_images(self, partition: Partition) -> Set[str]:
        """Storage numbers of stored records that have no image asset."""
        rows = await self._store.query(
            {"series_code": partition.series_code, "language": partition.language}
        )
        stored = await self.stored_keys(partition)
        missing = set()
        for row in rows:
            number = str(row.get("number", ""))
            if number and f"{asset_prefix(partition)}/{number}.webp" not in stored:
                missing.add(number)
        return missing

    async def put_image(self, record: CardRecord, source_url: str) -> str:
        key = asset_key(record)
        stored = await self.stored_keys(record.partition)
        if key in stored:
            logger.debug("%s: image already stored", key)
            return self._assets.public_url(key)

        data = await self._fetcher.fetch(source_url)
        await self._upload_limiter.wait()
        try:
            url = await self._assets.upload(data, key)
        except UploadError:
            raise
        except Exception as exc:
            raise UploadError(f"Upload of {key} failed: {exc}") from exc
        stored.add(key)
        self.uploads += 1
        logger.debug("Uploaded %s (%d bytes)", key, len(data))
        return url

    async def put_record(self, record: CardRecord) -> None:
        try:
            await self._store.upsert(record_row(record), self._conflict_key)
        except UploadError:
            raise
        except Exception as exc:
            raise UploadError(f"Upsert of {record.key} failed: {exc}") from exc

    async def close(self) -> None:
        await self._fetcher.close()
