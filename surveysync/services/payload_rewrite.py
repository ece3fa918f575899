"""
Local reference → remote URL rewriting for queued submissions.

A media-bearing field holds either a device-local reference (captured but
not uploaded yet) or a remote URL. ``media_ref`` turns the raw string into
``LocalRef`` or ``RemoteRef`` so callers handle both cases explicitly.

Media-bearing fields:
  responser.house_image_url, responser.photo_url,
  answers[].audio_url, answers[].video_url
"""
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union

from surveysync.core.exceptions import UnresolvedMediaError
from surveysync.schemas.submission import SubmissionPayload

RESPONSER_MEDIA_FIELDS = ("house_image_url", "photo_url")
ANSWER_MEDIA_FIELDS = ("audio_url", "video_url")

_REMOTE_SCHEMES = ("http://", "https://")


@dataclass(frozen=True)
class LocalRef:
    uri: str


@dataclass(frozen=True)
class RemoteRef:
    url: str


MediaRef = Union[LocalRef, RemoteRef]


def media_ref(value: Optional[str]) -> Optional[MediaRef]:
    """Classify a field value; empty values carry no reference."""
    if not value:
        return None
    if value.lower().startswith(_REMOTE_SCHEMES):
        return RemoteRef(value)
    return LocalRef(value)


def _media_fields(payload: SubmissionPayload) -> Iterator[Tuple[object, str]]:
    """Yield (owner, field_name) for every media-bearing field in order."""
    for field in RESPONSER_MEDIA_FIELDS:
        yield payload.responser, field
    for row in payload.answers:
        for field in ANSWER_MEDIA_FIELDS:
            yield row, field


def referenced_local_uris(payload: SubmissionPayload) -> List[str]:
    """Distinct local URIs the payload depends on, in field order."""
    seen: List[str] = []
    for owner, field in _media_fields(payload):
        ref = media_ref(getattr(owner, field))
        if isinstance(ref, LocalRef) and ref.uri not in seen:
            seen.append(ref.uri)
    return seen


def rewrite_payload(payload: SubmissionPayload, url_map: Dict[str, str]) -> SubmissionPayload:
    """
    Return a deep copy with every local reference replaced by its remote URL.

    Raises:
        UnresolvedMediaError: if any local reference is missing from ``url_map``.
            Nothing is rewritten in that case.
    """
    missing = [uri for uri in referenced_local_uris(payload) if not url_map.get(uri)]
    if missing:
        raise UnresolvedMediaError(missing)

    clone = payload.model_copy(deep=True)
    for owner, field in _media_fields(clone):
        ref = media_ref(getattr(owner, field))
        if ref is None or isinstance(ref, RemoteRef):
            continue
        setattr(owner, field, url_map[ref.uri])
    return clone
