"""
VOE embed decoder.

VOE hides the stream URL behind a redirect page and several layers of
obfuscation that change from time to time.  Extraction therefore tries
four independent strategies in a fixed order and stops at the first one
that yields a source:

1. JSON ``<script>`` block, five-stage decode (ROT13, junk-token removal,
   base64, code-point shift, reverse + base64).
2. Base64 literal assigned to ``a168c``, reversed JSON.
3. Base64 HLS URL under the ``'hls'`` key.
4. Any literal ``.m3u8`` / ``.mp4`` URL in the page.

Each strategy is a module-level function returning ``None`` on failure so
it can be tested on its own.
"""

import base64
import codecs
import json
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from ..constants import (
    BROWSER_USER_AGENT,
    PAGE_TIMEOUT_SECONDS,
    PREVIEW_HEAD_TIMEOUT_SECONDS,
    VOE_JUNK_PARTS,
    VOE_PREVIEW_SUFFIX,
)
from ..exceptions import ExtractionError
from ..utils import setup_logger

logger = setup_logger("voe_provider", "providers.log")

REDIRECT_RE = re.compile(r"https?://[^'\"<>]+")
SCRIPT_JSON_RE = re.compile(r'<script type="application/json">([^<]+)</script>')
B64_VAR_RE = re.compile(r"var a168c='([^']+)'")
HLS_RE = re.compile(r"'hls': '(?P<hls>[^']+)'")
VIDEO_URL_RE = re.compile(r"https?://[^\"']*\.(?:m3u8|mp4)[^\"']*", re.IGNORECASE)

_PLACEHOLDER = "_"


# ── Decode primitives ────────────────────────────────────────────


def rot13_letters(text: str) -> str:
    """ROT13 on ASCII letters; every other character is unchanged."""
    return codecs.encode(text, "rot_13")


def strip_junk(text: str) -> str:
    """Replace each junk token with a placeholder, then drop all placeholders."""
    for part in VOE_JUNK_PARTS:
        text = text.replace(part, _PLACEHOLDER)
    return text.replace(_PLACEHOLDER, "")


def shift_back(text: str, n: int) -> str:
    return "".join(chr(ord(c) - n) for c in text)


def b64decode_text(data: str) -> str:
    """Lenient base64 decode: tolerates missing padding, returns UTF-8 text."""
    data = data.strip()
    data += "=" * (-len(data) % 4)
    return base64.b64decode(data).decode("utf-8")


def decode_voe_string(encoded: str) -> Dict[str, Any]:
    """Reverse the five-stage VOE payload obfuscation.

    Raises:
        ExtractionError: If any stage produces garbage.
    """
    try:
        step1 = rot13_letters(encoded)
        step2 = strip_junk(step1)
        step3 = b64decode_text(step2)
        step4 = shift_back(step3, 3)
        step5 = b64decode_text(step4[::-1])
        decoded = json.loads(step5)
    except ValueError as e:
        raise ExtractionError(f"Failed to decode VOE string: {e}") from e

    if not isinstance(decoded, dict):
        raise ExtractionError("Decoded VOE payload is not a JSON object")
    return decoded


# ── Extraction strategies ────────────────────────────────────────


def extract_from_script(html: str) -> Optional[str]:
    """Strategy 1: guarded JSON script block with the full decode."""
    match = SCRIPT_JSON_RE.search(html)
    if not match:
        return None
    try:
        decoded = decode_voe_string(match.group(1)[2:-2])
    except ExtractionError as e:
        logger.debug("Script extraction failed: %s", e)
        return None
    return decoded.get("source") or None


def extract_from_b64_variable(html: str) -> Optional[str]:
    """Strategy 2: reversed JSON hidden in a base64 variable."""
    match = B64_VAR_RE.search(html)
    if not match:
        return None
    try:
        parsed = json.loads(b64decode_text(match.group(1))[::-1])
    except ValueError as e:
        logger.debug("Base64 variable method failed: %s", e)
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed.get("source") or None


def extract_from_hls(html: str) -> Optional[str]:
    """Strategy 3: base64 encoded HLS manifest URL."""
    match = HLS_RE.search(html)
    if not match:
        return None
    try:
        return b64decode_text(match.group("hls")) or None
    except ValueError as e:
        logger.debug("HLS method failed: %s", e)
        return None


def extract_video_url(html: str) -> Optional[str]:
    """Strategy 4: first literal stream URL anywhere in the markup."""
    match = VIDEO_URL_RE.search(html)
    return match.group(0) if match else None


EXTRACTION_STRATEGIES: List[Tuple[str, Callable[[str], Optional[str]]]] = [
    ("script tag", extract_from_script),
    ("base64 variable", extract_from_b64_variable),
    ("hls pattern", extract_from_hls),
    ("direct video url", extract_video_url),
]


def extract_from_html(html: str) -> str:
    """Run the strategies in order and return the first source found.

    Raises:
        ExtractionError: If no strategy finds a source.
    """
    for label, strategy in EXTRACTION_STRATEGIES:
        source = strategy(html)
        if source:
            logger.info("VOE source found via %s", label)
            return source
        logger.debug("VOE %s: no match", label)
    raise ExtractionError("No video source found using any extraction method")


def find_redirect_url(html: str) -> Optional[str]:
    match = REDIRECT_RE.search(html)
    return match.group(0) if match else None


def preview_url_for(redirect_url: str) -> str:
    return redirect_url.replace("/e/", "/cache/") + VOE_PREVIEW_SUFFIX


# ── Provider ─────────────────────────────────────────────────────


class VoeProvider:
    """``VideoProvider`` implementation for voe.sx style embed pages."""

    name = "voe"

    def __init__(self, timeout: int = PAGE_TIMEOUT_SECONDS):
        self.timeout = timeout

    def extract_direct_link(self, embed_url: str) -> str:
        html = self._fetch(embed_url)
        redirect_url = find_redirect_url(html)

        if redirect_url:
            logger.info("Following redirect to: %s", redirect_url)
            html = self._fetch(redirect_url, referer=embed_url)
        else:
            logger.info("No redirect found, trying direct extraction")

        return extract_from_html(html)

    def extract_preview_image(self, embed_url: str) -> str:
        try:
            html = self._fetch(embed_url)
            redirect_url = find_redirect_url(html)
            if not redirect_url:
                raise ExtractionError("No redirect URL found in VOE response")

            image_url = preview_url_for(redirect_url)
            response = requests.head(
                image_url,
                headers={"User-Agent": BROWSER_USER_AGENT},
                timeout=PREVIEW_HEAD_TIMEOUT_SECONDS,
                allow_redirects=True,
            )
            response.raise_for_status()
            return image_url
        except (requests.RequestException, ExtractionError) as e:
            raise ExtractionError(f"Failed to extract preview image: {e}") from e

    def _fetch(self, url: str, referer: Optional[str] = None) -> str:
        headers = {"User-Agent": BROWSER_USER_AGENT}
        if referer:
            headers["Referer"] = referer
        try:
            response = requests.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExtractionError(f"Failed to fetch VOE page {url}: {e}") from e
        return response.text
