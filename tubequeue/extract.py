import re
from typing import Optional
from urllib.parse import parse_qs, urlsplit

ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
URL_RE = re.compile(r"https?://\S+")
BARE_ID_RE = re.compile(r"(?<![A-Za-z0-9_-])([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])")

YOUTUBE_HOSTS = {"youtube.com", "m.youtube.com", "music.youtube.com", "youtu.be"}
ID_PATH_PREFIXES = ("shorts", "live", "embed", "v")


def _from_url(candidate: str) -> Optional[str]:
    try:
        u = urlsplit(candidate)
    except ValueError:
        return None
    host = (u.hostname or "")
    if host.startswith("www."):
        host = host[4:]
    if host not in YOUTUBE_HOSTS:
        return None

    # watch?v=VIDEOID
    v = parse_qs(u.query).get("v", [None])[0]
    if v and ID_RE.match(v):
        return v

    seg = [s for s in u.path.split("/") if s]
    candidates = []
    if len(seg) > 1 and seg[0] in ID_PATH_PREFIXES:
        candidates.append(seg[1])
    if host == "youtu.be" and seg:
        candidates.append(seg[0])
    for c in candidates:
        if ID_RE.match(c):
            return c

    # trailing junk after the id in the last segment
    if seg and ID_RE.match(seg[-1][:11]):
        return seg[-1][:11]
    return None


def extract_video_id(text: str = "") -> Optional[str]:
    """
    Pull a YouTube video id out of a chat message: a watch/shorts/live/embed/
    youtu.be link anywhere in the text, or a bare 11-character id.
    """
    text = str(text or "").strip()
    m = URL_RE.search(text)
    candidate = m.group(0) if m else text

    found = _from_url(candidate)
    if found:
        return found

    raw = BARE_ID_RE.search(candidate)
    return raw.group(1) if raw else None
