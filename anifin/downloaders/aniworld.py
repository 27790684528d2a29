"""
Aniworld downloader.

Handles the three URL scopes the site exposes:

* ``/anime/stream/<slug>/staffel-<n>/episode-<m>``: one episode
* ``/anime/stream/<slug>/staffel-<n>``: every episode of a season
* ``/anime/stream/<slug>``: every season

Each episode page links to its hosters through ``/redirect/<id>`` anchors
tagged with a ``data-lang-key``.  The redirect is followed to the
hoster's embed page, a provider decodes the direct stream URL, and
yt-dlp saves the file.
"""

import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import requests

from ..config import ConfigError
from ..constants import (
    BROWSER_USER_AGENT,
    DEFAULT_DOWNLOAD_PATH,
    DEFAULT_LANGUAGE,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_SITE_BASE_URL,
    FALLBACK_LANGUAGE,
    LANGUAGE_CODES,
    MAX_REDIRECT_HOPS,
    PAGE_TIMEOUT_SECONDS,
)
from ..download_log import DownloadLog
from ..exceptions import (
    ExtractionError,
    InvalidUrlError,
    ProviderNotFoundError,
    UnknownLanguageError,
    UploadError,
)
from ..fetch_utility import YtDlpRunner, build_format_args
from ..models import DownloadOptions, EpisodeRef, LogEntry, VideoInfo
from ..providers.base import VideoProvider, supports_preview
from ..uploader import SSHUploader
from ..utils import ensure_directory, sanitize_filename, setup_logger

SERIES_RE = re.compile(r"^(.*?/anime/stream/([^/?#]+))")
EPISODE_RE = re.compile(r"/anime/stream/([^/]+)/staffel-(\d+)/episode-(\d+)")
EPISODE_SCOPE_RE = re.compile(r"/staffel-\d+/episode-\d+$")
SEASON_SCOPE_RE = re.compile(r"/staffel-(\d+)$")
GENERIC_REDIRECT_RE = re.compile(r'href="([^"]*/redirect/[^"]*)"', re.IGNORECASE)


# ── URL / markup parsing ─────────────────────────────────────────


def series_url_from(url: str) -> str:
    """Return the ``.../anime/stream/<slug>`` prefix of *url*."""
    match = SERIES_RE.match(url)
    if not match:
        raise InvalidUrlError(f"Invalid anime URL: {url}")
    return match.group(1)


def series_title_from(url: str) -> str:
    match = SERIES_RE.match(url)
    if not match:
        raise InvalidUrlError(f"Invalid anime URL: {url}")
    return match.group(2).replace("-", " ")


def parse_episode_url(url: str) -> EpisodeRef:
    match = EPISODE_RE.search(url)
    if not match:
        raise InvalidUrlError(f"Invalid episode URL: {url}")
    season, episode = int(match.group(2)), int(match.group(3))
    if season < 1 or episode < 1:
        raise InvalidUrlError(f"Season and episode must be >= 1: {url}")
    return EpisodeRef(series_title=match.group(1).replace("-", " "), season=season, episode=episode)


def collect_numbers(html: str, marker: str) -> List[int]:
    """Distinct ``<marker>-<n>`` numbers in *html*, ascending.

    Listing pages repeat every link several times (thumbnails, titles,
    navigation) so duplicates are expected.
    """
    pattern = re.compile(rf"{re.escape(marker)}-(\d+)")
    return sorted({n for n in map(int, pattern.findall(html)) if n >= 1})


def find_language_redirect(html: str, lang_code: int) -> Optional[str]:
    pattern = re.compile(
        rf'data-lang-key="{lang_code}"[^>]*href="([^"]*/redirect/[^"]*)"', re.IGNORECASE
    )
    match = pattern.search(html)
    return match.group(1) if match else None


def find_generic_redirect(html: str) -> Optional[str]:
    match = GENERIC_REDIRECT_RE.search(html)
    return match.group(1) if match else None


def episode_filename(ref: EpisodeRef, language: str, output_format: Optional[str] = None) -> str:
    ext = (output_format or DEFAULT_OUTPUT_FORMAT).lower()
    return sanitize_filename(f"{ref.series_title} - {ref.code} - ({language}).{ext}")


def _site_base(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return DEFAULT_SITE_BASE_URL


# ── Downloader ───────────────────────────────────────────────────


class AniworldDownloader:
    """Download episodes, seasons or whole series from Aniworld."""

    def __init__(
        self,
        config: Dict[str, Any],
        providers: Iterable[VideoProvider] = (),
        default_provider: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        runner: Optional[YtDlpRunner] = None,
        uploader_factory: Optional[Callable[[], Any]] = None,
    ):
        """Initialise the downloader.

        Args:
            config: Application config dict (uses ``app`` and ``ssh``).
            providers: Video hosts to register.
            default_provider: Provider used when a job names none.
                Defaults to the first registered provider.
            session: HTTP session for site pages (created if omitted).
            runner: yt-dlp runner (created if omitted).
            uploader_factory: Builds the upload relay per call.
                Defaults to :class:`SSHUploader` over ``config``.

        Raises:
            ValueError: If no provider and no default are given.
        """
        self.config = config
        ensure_directory(self.output_dir)

        self.logger = setup_logger("aniworld_downloader", "downloads.log")
        self._log = DownloadLog(self.logger)

        self.session = session or requests.Session()
        self.session.max_redirects = MAX_REDIRECT_HOPS
        self.runner = runner or YtDlpRunner(self.log)
        self._uploader_factory = uploader_factory or (
            lambda: SSHUploader(self.config, log=self.log)
        )

        self.providers: Dict[str, VideoProvider] = {}
        for provider in providers:
            self.providers[provider.name.lower()] = provider

        first = next(iter(self.providers), "")
        self.default_provider = (default_provider or first).lower()
        if not self.default_provider:
            raise ValueError("At least one provider must be registered")

    # ── Live settings ────────────────────────────────────────────
    # Read from the shared config on every access so runtime edits apply
    # to the next job.

    @property
    def output_dir(self) -> Path:
        return Path(self.config.get("app", {}).get("download_path") or DEFAULT_DOWNLOAD_PATH)

    @property
    def default_language(self) -> str:
        return self.config.get("app", {}).get("default_language") or DEFAULT_LANGUAGE

    @property
    def fallback_language(self) -> str:
        return self.config.get("app", {}).get("fallback_language") or FALLBACK_LANGUAGE

    @property
    def auto_upload(self) -> bool:
        return bool(self.config.get("app", {}).get("auto_upload", False))

    # ── Provider registry ────────────────────────────────────────

    def register_provider(self, provider: VideoProvider) -> None:
        name = provider.name.lower()
        self.providers[name] = provider
        if not self.default_provider:
            self.default_provider = name

    def set_default_provider(self, name: str) -> None:
        key = name.lower()
        if key not in self.providers:
            raise ProviderNotFoundError(name)
        self.default_provider = key

    def get_provider(self, name: Optional[str] = None) -> VideoProvider:
        key = (name or self.default_provider).lower()
        provider = self.providers.get(key)
        if provider is None:
            raise ProviderNotFoundError(key)
        return provider

    # ── Logs ─────────────────────────────────────────────────────

    def log(self, message: str, level: str = "info") -> None:
        self._log.log(message, level)

    def get_logs(self) -> List[LogEntry]:
        return self._log.entries()

    def clear_logs(self) -> None:
        self._log.clear()

    def on_log(self, callback: Callable[[LogEntry], None]) -> Callable:
        return self._log.on_log(callback)

    def off_log(self, handle: Callable) -> bool:
        return self._log.off_log(handle)

    # ── Public API ───────────────────────────────────────────────

    def download(self, url: str, options: Optional[DownloadOptions] = None) -> str:
        """Download an episode, a season or a whole series.

        Returns:
            The episode file path, or the series directory for bulk scopes.

        Raises:
            InvalidUrlError, ProviderNotFoundError, UnknownLanguageError,
            ValueError: Before any network or process I/O.
        """
        if isinstance(options, dict):
            options = DownloadOptions.from_dict(options)
        options = options or DownloadOptions()

        url = url.strip().rstrip("/")
        series_url = series_url_from(url)
        provider_name = self.get_provider(options.provider).name.lower()
        language = options.language or self.default_language
        self._language_code(language)
        build_format_args(options.quality, options.format)

        if EPISODE_SCOPE_RE.search(url):
            return self._download_single_episode(url, options, provider_name, language)

        season_match = SEASON_SCOPE_RE.search(url)
        if season_match:
            season = int(season_match.group(1))
            return self._download_season(series_url, season, options, provider_name, language)

        return self._download_series(series_url, options, provider_name, language)

    def get_video_info(
        self, url: str, provider: Optional[str] = None, language: Optional[str] = None
    ) -> VideoInfo:
        ref = parse_episode_url(url)
        embed_url, video_provider = self.extract_embed_and_provider(url, provider, language)

        thumbnail = None
        if supports_preview(video_provider):
            try:
                thumbnail = video_provider.extract_preview_image(embed_url)
            except Exception as e:
                self.logger.info("No preview available for %s: %s", url, e)

        return VideoInfo(
            title=f"{ref.series_title} S{ref.season}E{ref.episode}",
            url=url,
            thumbnail=thumbnail,
        )

    def terminate(self) -> bool:
        """Kill hook for the running yt-dlp process."""
        return self.runner.terminate()

    def get_seasons(self, series_url: str) -> List[int]:
        return collect_numbers(self._fetch_page(series_url), "staffel")

    def get_episodes(self, series_url: str, season: int) -> List[int]:
        return collect_numbers(self._fetch_page(f"{series_url}/staffel-{season}"), "episode")

    def extract_embed_and_provider(
        self,
        episode_url: str,
        provider_name: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Tuple[str, VideoProvider]:
        """Resolve the hoster embed URL for *episode_url*.

        Raises:
            ProviderNotFoundError, UnknownLanguageError: Before fetching.
            ExtractionError: If no link of the requested provider exists.
        """
        provider = self.get_provider(provider_name)
        target_language = language or self.default_language
        lang_code = self._language_code(target_language)

        html = self._fetch_page(episode_url)
        self.log(f"Looking for {provider.name} with language: {target_language}")

        redirect = find_language_redirect(html, lang_code)

        fallback_code = LANGUAGE_CODES.get(self.fallback_language)
        if not redirect and fallback_code and self.fallback_language != target_language:
            self.log(
                f"Language {target_language} not found, trying fallback: {self.fallback_language}",
                "warning",
            )
            redirect = find_language_redirect(html, fallback_code)

        if not redirect:
            redirect = find_generic_redirect(html)

        if redirect:
            redirect_url = urljoin(_site_base(episode_url) + "/", redirect)
            self.log(f"Following redirect: {redirect_url}")

            final_url = self._resolve_redirect(redirect_url, referer=episode_url)
            if final_url and provider.name.lower() in final_url.lower():
                self.log(f"Found {provider.name} URL: {final_url}", "success")
                return final_url, provider

        raise ExtractionError(f"{provider.name} URL not found for language: {target_language}")

    def upload(self, local_path: str, remote_path: Optional[str] = None) -> bool:
        """Relay *local_path* to the media server.  Never raises."""
        if not self.auto_upload:
            self.log(
                "AutoUpload disabled! Set AUTO_UPLOAD=true to upload automatically after download",
                "warning",
            )
            return False

        self.log("Start uploading to media server...")
        try:
            uploader = self._uploader_factory()
            uploader.upload_directory(local_path, remote_path)
        except (UploadError, ConfigError, OSError) as e:
            self.log(f"Upload failed: {e}", "error")
            return False

        self.log(f"Successfully uploaded: {local_path}", "success")
        return True

    # ── Scope handlers ───────────────────────────────────────────

    def _download_single_episode(
        self,
        episode_url: str,
        options: DownloadOptions,
        provider_name: str,
        language: str,
        upload_after: bool = True,
    ) -> str:
        self.log(f"Processing: {episode_url}")

        ref = parse_episode_url(episode_url)
        self.log(f"Downloading: {ref.series_title} S{ref.season}E{ref.episode} [{language}]")

        series_dir = self._create_series_directory(ref.series_title, options.output_path)
        embed_url, provider = self.extract_embed_and_provider(episode_url, provider_name, language)
        direct_link = provider.extract_direct_link(embed_url)

        # Only the final path component of a caller-supplied name is used
        filename = sanitize_filename(Path(options.filename).name) if options.filename else ""
        filename = filename or episode_filename(ref, language, options.format)
        output_path = series_dir / filename

        self.runner.run(
            direct_link, str(output_path), build_format_args(options.quality, options.format)
        )
        self.log(f"Completed: {filename}", "success")

        if upload_after:
            self.upload(str(series_dir))

        return str(output_path)

    def _download_season(
        self,
        series_url: str,
        season: int,
        options: DownloadOptions,
        provider_name: str,
        language: str,
    ) -> str:
        series_dir = self._create_series_directory(series_title_from(series_url), options.output_path)

        self.log(f"Downloading season {season} [{language}]...")
        episodes = self.get_episodes(series_url, season)
        self.log(f"Found {len(episodes)} episodes")

        completed = self._run_episodes(
            series_url, season, episodes, options, provider_name, language, "episode {ep}"
        )

        self.log(f"Season {season} completed!", "success")
        self._upload_batch(series_dir, completed)
        return str(series_dir)

    def _download_series(
        self, series_url: str, options: DownloadOptions, provider_name: str, language: str
    ) -> str:
        title = series_title_from(series_url)
        series_dir = self._create_series_directory(title, options.output_path)

        self.log(f"Downloading entire anime: {title} [{language}]")
        seasons = self.get_seasons(series_url)
        self.log(f"Found {len(seasons)} seasons")

        completed = 0
        for season in seasons:
            self.log(f"Season {season}")
            try:
                episodes = self.get_episodes(series_url, season)
            except ExtractionError as e:
                self.log(f"Failed to list season {season}: {e}", "error")
                continue
            self.log(f"Found {len(episodes)} episodes")
            completed += self._run_episodes(
                series_url, season, episodes, options, provider_name, language,
                f"S{season}E{{ep}}",
            )

        self.log("Download completed!", "success")
        self._upload_batch(series_dir, completed)
        return str(series_dir)

    def _run_episodes(
        self,
        series_url: str,
        season: int,
        episodes: List[int],
        options: DownloadOptions,
        provider_name: str,
        language: str,
        label: str,
    ) -> int:
        """Download *episodes* in order; failures are logged and skipped."""
        completed = 0
        for episode in episodes:
            try:
                self._download_single_episode(
                    f"{series_url}/staffel-{season}/episode-{episode}",
                    options,
                    provider_name,
                    language,
                    upload_after=False,
                )
                completed += 1
            except Exception as e:
                self.log(f"Failed {label.format(ep=episode)}: {e}", "error")
        return completed

    def _upload_batch(self, series_dir: Path, completed: int) -> None:
        if completed == 0:
            self.log("No episodes downloaded, skipping upload", "warning")
            return
        self.upload(str(series_dir))

    # ── Helpers ──────────────────────────────────────────────────

    def _language_code(self, label: str) -> int:
        code = LANGUAGE_CODES.get(label)
        if code is None:
            raise UnknownLanguageError(label)
        return code

    def _create_series_directory(self, title: str, output_path: Optional[str] = None) -> Path:
        base = Path(output_path) if output_path else self.output_dir
        return ensure_directory(base / sanitize_filename(title))

    def _fetch_page(self, url: str, referer: Optional[str] = None) -> str:
        response = self._get(url, referer)
        return response.text

    def _resolve_redirect(self, url: str, referer: str) -> Optional[str]:
        response = self._get(url, referer)
        return response.url

    def _get(self, url: str, referer: Optional[str] = None):
        headers = {"User-Agent": BROWSER_USER_AGENT}
        if referer:
            headers["Referer"] = referer
        try:
            response = self.session.get(url, headers=headers, timeout=PAGE_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExtractionError(f"Request to {url} failed: {e}") from e
        return response
