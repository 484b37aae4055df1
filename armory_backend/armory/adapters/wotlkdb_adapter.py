"""
WotLKDB Scraper Adapter

Maps a spell_item_enchantment id to the item that applies it by scraping
https://wotlkdb.com/?enchantment={id}. WotLKDB has no API, no batch
endpoint, and bans aggressive clients, so this adapter:
- Refuses to touch the network while the ban cooldown is active
- Rotates the User-Agent per request
- Treats 429 / "rate limit" pages as a ban signal (cooldown + retryable error)

Extraction is best-effort, first strategy that finds an item id wins:
1. First <a href="?item=N"> with visible text (gem if it has a qN quality class)
2. Inline <script> referencing g_items[N] / g_gems[N] (always a gem)
3. og:title meta tag containing "Item N"

A page where no strategy matches is a successful-but-empty fetch, not an
error: fetch() returns None and the resolver does not retry it.

Usage:
    adapter = WotLKDBAdapter(cooldown=CooldownTracker())
    item = await adapter.fetch(3539)
"""
import asyncio
import logging
import random
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from armory.core.config import DEFAULT_USER_AGENTS
from armory.core.exceptions import FetchError, FetchTimeoutError, ThrottledError
from armory.services.cooldown import CooldownTracker
from armory.services.resolution import EnchantmentCategory

logger = logging.getLogger(__name__)

WOTLKDB_BASE_URL = "https://wotlkdb.com"

ITEM_HREF_RE = re.compile(r"\?item=(\d+)")
QUALITY_CLASS_RE = re.compile(r"^q\d$")
SCRIPT_ITEM_RE = re.compile(r"g_(?:items|gems)\[(\d+)\]")
SCRIPT_NAME_RE = re.compile(r'"name_enus"\s*:\s*"([^"]+)"')
OG_TITLE_ITEM_RE = re.compile(r"Item\s+(\d+)", re.IGNORECASE)
THROTTLE_MARKER = "rate limit"

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


@dataclass(frozen=True)
class ExtractedItem:
    item_id: int
    name: str
    category: EnchantmentCategory
    strategy: str


# =============================================================================
# EXTRACTION
# =============================================================================

def _extract_from_links(soup: BeautifulSoup) -> Optional[ExtractedItem]:
    for link in soup.select('a[href*="?item="]'):
        text = link.get_text(strip=True)
        match = ITEM_HREF_RE.search(link.get("href", ""))
        if not text or not match:
            continue

        classes = link.get("class") or []
        if any(QUALITY_CLASS_RE.match(cls) for cls in classes):
            category = EnchantmentCategory.GEM
        else:
            category = EnchantmentCategory.ENCHANT
        return ExtractedItem(int(match.group(1)), text, category, "link")
    return None


def _extract_from_scripts(soup: BeautifulSoup) -> Optional[ExtractedItem]:
    for script in soup.find_all("script", src=False):
        content = script.string or script.get_text() or ""
        match = SCRIPT_ITEM_RE.search(content)
        if not match:
            continue

        item_id = int(match.group(1))
        name_match = SCRIPT_NAME_RE.search(content)
        name = name_match.group(1) if name_match else f"Gem {item_id}"
        return ExtractedItem(item_id, name, EnchantmentCategory.GEM, "script")
    return None


def _extract_from_meta(soup: BeautifulSoup) -> Optional[ExtractedItem]:
    meta = soup.find("meta", attrs={"property": "og:title"})
    content = meta.get("content") if meta else None
    if not content:
        return None

    match = OG_TITLE_ITEM_RE.search(content)
    if not match:
        return None
    name = content.split("-")[0].strip() or f"Item {match.group(1)}"
    return ExtractedItem(int(match.group(1)), name, EnchantmentCategory.ENCHANT, "meta")


EXTRACTION_STRATEGIES = (_extract_from_links, _extract_from_scripts, _extract_from_meta)


def extract_item(html: str) -> Optional[ExtractedItem]:
    """Run the extraction strategies in order against an enchantment page."""
    soup = BeautifulSoup(html, "html.parser")
    for strategy in EXTRACTION_STRATEGIES:
        item = strategy(soup)
        if item is not None:
            return item
    return None


def _write_page(path: Path, html: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(html, encoding="utf-8")


def is_throttled(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return THROTTLE_MARKER in response.text.lower()


# =============================================================================
# ADAPTER
# =============================================================================

class WotLKDBAdapter:

    def __init__(
        self,
        cooldown: CooldownTracker,
        base_url: str = WOTLKDB_BASE_URL,
        timeout: float = 10.0,
        user_agents: Optional[List[str]] = None,
        debug_html_dir: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.cooldown = cooldown
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agents = list(user_agents or DEFAULT_USER_AGENTS)
        self.debug_html_dir = Path(debug_html_dir) if debug_html_dir else None
        self._client = client
        self.request_count = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=DEFAULT_HEADERS,
                follow_redirects=True,
            )
        return self._client

    def _request_headers(self) -> dict:
        return {
            "User-Agent": random.choice(self.user_agents),
            "Referer": f"{self.base_url}/",
        }

    def enchantment_url(self, enchantment_id: int) -> str:
        return f"{self.base_url}/?enchantment={enchantment_id}"

    async def fetch(self, enchantment_id: int, attempt: int = 0) -> Optional[ExtractedItem]:
        """
        Fetch and parse one enchantment page.

        Returns:
            ExtractedItem, or None if the page parsed but had no item reference

        Raises:
            CooldownActiveError: ban window still open, no request was made
            ThrottledError: WotLKDB rate limited us (cooldown now active)
            FetchTimeoutError / FetchError: transport failure or bad status
        """
        self.cooldown.check(enchantment_id)

        logger.info(f"[WotLKDB] Scraping enchantment {enchantment_id} (attempt {attempt + 1})")
        client = self._get_client()
        self.request_count += 1

        try:
            response = await client.get(
                self.enchantment_url(enchantment_id),
                headers=self._request_headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Timed out fetching enchantment {enchantment_id}: {e}",
                enchantment_id=enchantment_id,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"Request for enchantment {enchantment_id} failed: {e}",
                enchantment_id=enchantment_id,
            ) from e

        if is_throttled(response):
            self.cooldown.trigger()
            raise ThrottledError(
                f"Rate limited by WotLKDB (HTTP {response.status_code})",
                enchantment_id=enchantment_id,
            )

        if response.status_code != 200:
            raise FetchError(
                f"HTTP {response.status_code} for enchantment {enchantment_id}",
                status_code=response.status_code,
                enchantment_id=enchantment_id,
            )

        item = extract_item(response.text)
        if item is None:
            logger.warning(f"[WotLKDB] No item reference found for enchantment {enchantment_id}")
            await self._dump_html(enchantment_id, response.text)
            return None

        logger.info(
            f"[WotLKDB] {item.strategy}: {enchantment_id} -> Item {item.item_id} "
            f"({item.name}) [{item.category.value}]"
        )
        return item

    async def _dump_html(self, enchantment_id: int, html: str) -> None:
        """Keep unparseable pages around for selector debugging."""
        if self.debug_html_dir is None:
            return
        path = self.debug_html_dir / f"wotlkdb-{enchantment_id}.html"
        try:
            await asyncio.to_thread(_write_page, path, html)
            logger.info(f"[WotLKDB] HTML saved to {path}")
        except OSError as e:
            logger.error(f"[WotLKDB] Could not save debug HTML for {enchantment_id}: {e}")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
