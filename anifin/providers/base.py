"""Capability contract every video host implementation satisfies."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class VideoProvider(Protocol):
    """Turn an embed-page URL into a direct, fetchable media URL.

    ``name`` is matched case-insensitively against the final redirect URL
    of an episode's hoster link, so it must appear in the host's domain.
    ``extract_preview_image(embed_url) -> str`` is an optional extra; use
    :func:`supports_preview` to check for it.
    """

    name: str

    def extract_direct_link(self, embed_url: str) -> str:
        ...


def supports_preview(provider: VideoProvider) -> bool:
    return callable(getattr(provider, "extract_preview_image", None))
