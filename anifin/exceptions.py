"""
Exception hierarchy for the download engine.

Input errors are raised before any network or process I/O.  Extraction,
fetch-utility and upload errors are scoped to a single episode; the
season/series loop and the queue drain loop catch them.
"""


class AniFinError(Exception):
    """Base class for all download engine errors."""


class InvalidUrlError(AniFinError):
    """The submitted URL does not match any known page shape."""


class ProviderNotFoundError(AniFinError):
    """No provider is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Provider '{name}' not found")
        self.name = name


class DownloaderNotFoundError(AniFinError):
    """No downloader is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Downloader '{name}' not found")
        self.name = name


class UnknownLanguageError(AniFinError):
    """The language label has no site-specific selector code."""

    def __init__(self, label: str):
        super().__init__(f"Unknown language: {label}")
        self.label = label


class ExtractionError(AniFinError):
    """A page, redirect or embed payload could not be turned into a link."""


class FetchUtilityError(AniFinError):
    """yt-dlp could not be started or exited with a non-zero code."""

    def __init__(self, message: str, returncode=None):
        super().__init__(message)
        self.returncode = returncode


class UploadError(AniFinError):
    """A file or directory could not be copied to the remote host."""
