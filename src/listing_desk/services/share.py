"""
Share helpers: plain-text record summaries and the social media post.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..api.config import Config
from ..models.listing import as_text, is_blank


SHARE_TITLE = "Listing"
FACEBOOK_SHARER = "https://www.facebook.com/sharer/sharer.php"

_DRIVE_FILE_ID = re.compile(r"/d/([a-zA-Z0-9_-]+)")


def record_summary(record: Dict[str, Any]) -> str:
    """`field: value` per line, in the record's own field order."""
    return "\n".join(f"{key}: {as_text(value)}" for key, value in record.items())


def share_payload(record: Dict[str, Any], title: str = SHARE_TITLE) -> Dict[str, str]:
    return {"title": title, "text": record_summary(record)}


def _has_media(record: Dict[str, Any], marker: str) -> bool:
    return any(marker in key.lower() and not is_blank(value) and value != 0 for key, value in record.items())


def media_line(record: Dict[str, Any]) -> str:
    has_photos = _has_media(record, "photo")
    has_video = _has_media(record, "video")
    if has_photos and has_video:
        return "PM for Photos and Video"
    if has_photos:
        return "PM for Photos"
    if has_video:
        return "PM for Video"
    return ""


def _field(record: Dict[str, Any], *names: str) -> str:
    for name in names:
        value = record.get(name)
        if not is_blank(value):
            return as_text(value)
    return ""


def social_post_text(
    record: Dict[str, Any],
    signature: Optional[List[str]] = None,
    headline: Optional[str] = None,
    hashtags: Optional[str] = None,
) -> str:
    """The fixed for-sale post template, with an optional trailing media line."""
    signature = Config.signature_lines() if signature is None else signature
    headline = Config.POST_HEADLINE if headline is None else headline
    hashtags = Config.POST_HASHTAGS if hashtags is None else hashtags

    sections = [
        headline,
        f"📍{_field(record, 'Village')},\n📍{_field(record, 'Location')},",
        f"🏷️{_field(record, 'Listing Price', 'ListingPrice', 'Price')}",
        f"Lot Area : {_field(record, 'Lot Area')}\nFloor Area : {_field(record, 'Floor Area')}",
        f"✔️ {_field(record, 'Notes')}",
        f"CGT - {_field(record, 'CGT')}\nTransfer - {_field(record, 'Transfer Title')}",
        "\n".join(signature),
        hashtags,
    ]
    text = "\n\n".join(section for section in sections if section)
    media = media_line(record)
    if media:
        text = f"{text}\n\n{media}"
    return text


def drive_thumbnail_url(url: str) -> Optional[str]:
    """Thumbnail for a Google Drive file link, None for anything else."""
    if not url or "drive.google.com" not in url:
        return None
    match = _DRIVE_FILE_ID.search(url)
    if not match:
        return None
    return f"https://drive.google.com/thumbnail?id={match.group(1)}&sz=w400"


def first_photo_url(record: Dict[str, Any]) -> Optional[str]:
    for key, value in record.items():
        if "photo" in key.lower() and not is_blank(value):
            return as_text(value).split(",")[0].strip()
    return None


def facebook_share_url(record: Dict[str, Any], page_url: str, text: Optional[str] = None) -> str:
    """Sharer link quoting the post; a Drive photo thumbnail is used as the preview when present."""
    text = social_post_text(record) if text is None else text
    photo = first_photo_url(record)
    target = (drive_thumbnail_url(photo) if photo else None) or page_url
    return f"{FACEBOOK_SHARER}?u={quote(target, safe='')}&quote={quote(text, safe='')}"
