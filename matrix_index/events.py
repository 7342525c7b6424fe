"""Convert Matrix room events into index records.

Accepts matrix-nio ``Event`` objects as well as raw event dicts, since the
index only ever looks at the event source.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from nio import Event

from .logger import get_logger
from .normalize import tokenize
from .records import MediaRecord, MessageRecord

logger = get_logger(__name__)

ATTACHMENT_TYPES = {
    "m.image": ("image", "image/*"),
    "m.video": ("video", "video/*"),
    "m.file": ("file", "application/octet-stream"),
}
TAG_FIELDS = ("tags", "m.tags", "matrix_messenger.tags")
TRANSCRIPT_KEY = "econix.transcript"
TRANSCRIPT_STATUSES = ("pending", "error", "completed")

_URL_PATTERN = re.compile(r"\bhttps?://[^\s<>\"'`]+", re.IGNORECASE)
_URL_TRAILING = re.compile(r"[),.;:]+$")


def event_source(event: Any) -> Dict[str, Any]:
    if isinstance(event, Event):
        return event.source
    if isinstance(event, dict):
        return event
    raise TypeError(f"Cannot index object of type {type(event).__name__}")


def http_url(mxc: Optional[str], homeserver: Optional[str] = None) -> Optional[str]:
    """Resolve an mxc:// URI to a download URL on ``homeserver``; keep it as is otherwise."""
    if not mxc:
        return None
    if not homeserver or not mxc.startswith("mxc://"):
        return mxc
    server_name, _, media_id = mxc[len("mxc://"):].partition("/")
    if not server_name or not media_id:
        return mxc
    return (
        f"{homeserver.rstrip('/')}/_matrix/media/v3/download/"
        f"{quote(server_name, safe='')}/{quote(media_id, safe='')}"
    )


def extract_links(body: Optional[str]) -> List[str]:
    """http(s) links in a message body, de-duplicated in order of appearance."""
    if not body:
        return []
    links = []
    for match in _URL_PATTERN.findall(body):
        link = _URL_TRAILING.sub("", match)
        if link not in links:
            links.append(link)
    return links


def extract_tags(content: Dict[str, Any]) -> List[str]:
    tags = []
    for field in TAG_FIELDS:
        entry = content.get(field)
        if isinstance(entry, list):
            values = entry
        elif isinstance(entry, dict):
            values = list(entry.values())
        else:
            continue
        for value in values:
            if isinstance(value, str) and value.strip() and value.strip() not in tags:
                tags.append(value.strip())
    return tags


def _attachment_kind(content: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    msgtype = content.get("msgtype")
    if msgtype in ATTACHMENT_TYPES:
        return ATTACHMENT_TYPES[msgtype]
    info = content.get("info") if isinstance(content.get("info"), dict) else {}
    mimetype = info.get("mimetype") if isinstance(info.get("mimetype"), str) else ""
    if mimetype.startswith("image/"):
        return ATTACHMENT_TYPES["m.image"]
    if mimetype.startswith("video/"):
        return ATTACHMENT_TYPES["m.video"]
    if content.get("file") is not None or content.get("url"):
        return ATTACHMENT_TYPES["m.file"]
    return None


def media_from_event(
    room_id: str, event: Any, homeserver: Optional[str] = None
) -> List[MediaRecord]:
    """Media items for an event: its attachment or location, then every link in its body."""
    source = event_source(event)
    content = source.get("content") or {}
    event_id = source.get("event_id")
    if not event_id or source.get("type") != "m.room.message":
        return []
    if _annotation(source).get("key") == TRANSCRIPT_KEY:
        return []

    body = content.get("body") if isinstance(content.get("body"), str) else None
    base = {
        "event_id": event_id,
        "room_id": room_id,
        "sender": source.get("sender", ""),
        "timestamp": source.get("origin_server_ts", 0),
        "body": body,
    }
    items = []

    if content.get("msgtype") == "m.location":
        location = content.get("m.location") or {}
        url = content.get("external_url") or content.get("geo_uri") or location.get("uri")
        items.append(MediaRecord(id=f"{event_id}:0", media_type="link", url=url, **base))
    else:
        kind = _attachment_kind(content)
        if kind is not None:
            media_type, default_mimetype = kind
            info = content.get("info") if isinstance(content.get("info"), dict) else {}
            encrypted = content.get("file") if isinstance(content.get("file"), dict) else {}
            thumbnail = info.get("thumbnail_file") if isinstance(info.get("thumbnail_file"), dict) else {}
            mxc_url = encrypted.get("url") or content.get("url")
            items.append(
                MediaRecord(
                    id=f"{event_id}:0",
                    media_type=media_type,
                    mxc_url=mxc_url,
                    thumbnail_mxc=None if media_type == "file" else thumbnail.get("url") or info.get("thumbnail_url"),
                    file_name=body,
                    size=info.get("size") if isinstance(info.get("size"), int) else None,
                    mimetype=info.get("mimetype") or default_mimetype,
                    url=http_url(mxc_url, homeserver),
                    **base,
                )
            )

    for position, link in enumerate(extract_links(body), start=1):
        items.append(MediaRecord(id=f"{event_id}:{position}", media_type="link", url=link, **base))
    return items


def _annotation(source: Dict[str, Any]) -> Dict[str, Any]:
    relation = (source.get("content") or {}).get("m.relates_to") or {}
    return relation if relation.get("rel_type") == "m.annotation" else {}


def transcript_of(event: Any) -> Optional[Tuple[str, int, Optional[str]]]:
    """(target event id, timestamp, text) for a transcript annotation.

    Text is only given for completed transcripts. A missing status counts as
    completed, and the annotation body stands in for a missing text.
    """
    source = event_source(event)
    if source.get("type") != "m.room.message":
        return None
    relation = _annotation(source)
    target = relation.get("event_id")
    if relation.get("key") != TRANSCRIPT_KEY or not isinstance(target, str):
        return None
    content = source.get("content") or {}
    meta = content.get(TRANSCRIPT_KEY) if isinstance(content.get(TRANSCRIPT_KEY), dict) else {}
    status = meta.get("status") if meta.get("status") in TRANSCRIPT_STATUSES else "completed"
    text = meta.get("text") if isinstance(meta.get("text"), str) else content.get("body")
    if status != "completed" or not isinstance(text, str):
        text = None
    ts = source.get("origin_server_ts")
    return target, ts if isinstance(ts, int) else 0, text


def message_from_event(
    room_id: str,
    event: Any,
    media_items: Iterable[MediaRecord] = (),
    reactions: Iterable[str] = (),
    transcript: Optional[str] = None,
) -> Optional[MessageRecord]:
    """Index record for a room message, or None when there is nothing to search.

    Words of a completed ``transcript`` are folded into the tokens so voice
    messages and captioned media can be found by what was said.
    """
    source = event_source(event)
    if source.get("type") != "m.room.message" or not source.get("event_id"):
        return None
    if _annotation(source).get("key") == TRANSCRIPT_KEY:
        return None
    content = source.get("content") or {}
    sender = source.get("sender", "")
    body = content.get("body") if isinstance(content.get("body"), str) else None

    tokens = []
    for token in tokenize(body) + tokenize(transcript) + [sender.lower()]:
        if token and token not in tokens:
            tokens.append(token)
    tags = extract_tags(content)
    reactions = list(dict.fromkeys(reactions))
    media_types = [item.media_type for item in media_items]

    if not body and not tokens and not tags and not reactions:
        return None
    return MessageRecord(
        event_id=source["event_id"],
        room_id=room_id,
        sender=sender,
        timestamp=source.get("origin_server_ts", 0),
        body=body,
        tokens=tokens,
        tags=tags,
        reactions=reactions,
        has_media=bool(media_types),
        media_types=media_types,
    )


def reaction_target(event: Any) -> Optional[Tuple[str, str]]:
    """(target event id, reaction key) for an m.reaction annotation."""
    source = event_source(event)
    if source.get("type") != "m.reaction":
        return None
    relation = _annotation(source)
    target, key = relation.get("event_id"), relation.get("key")
    if isinstance(target, str) and isinstance(key, str):
        return target, key
    return None


def build_batch(
    room_id: str, events: Iterable[Any], homeserver: Optional[str] = None
) -> Tuple[List[MessageRecord], List[MediaRecord]]:
    """Turn a page of room events into an upsert batch.

    Reactions and transcripts are folded onto the messages they annotate when
    both are part of the same page. The newest transcript of a message wins.
    """
    events = [event for event in events if isinstance(event, (Event, dict))]
    reactions: Dict[str, List[str]] = {}
    transcripts: Dict[str, Tuple[int, Optional[str]]] = {}
    for event in events:
        annotation = reaction_target(event)
        if annotation is not None:
            target, key = annotation
            reactions.setdefault(target, []).append(key)
        transcript = transcript_of(event)
        if transcript is not None:
            target, ts, text = transcript
            if target not in transcripts or ts >= transcripts[target][0]:
                transcripts[target] = (ts, text)

    messages, media = [], []
    for event in events:
        event_id = event_source(event).get("event_id")
        try:
            items = media_from_event(room_id, event, homeserver)
            record = message_from_event(
                room_id,
                event,
                media_items=items,
                reactions=reactions.get(event_id, ()),
                transcript=transcripts.get(event_id, (0, None))[1],
            )
        except (AttributeError, ValueError) as e:
            logger.debug(f"Skipping unindexable event in {room_id}: {e}")
            continue
        media.extend(items)
        if record is not None:
            messages.append(record)
    return messages, media
