from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qs, urlsplit


class Platform(str, Enum):
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    X = "x"
    INSTAGRAM = "instagram"
    VIMEO = "vimeo"
    GITHUB = "github"
    DISCORD = "discord"
    LINKEDIN = "linkedin"


@dataclass(frozen=True)
class Recognized:
    platform: Platform
    platform_id: str


@dataclass(frozen=True)
class Unrecognized:
    raw: str
    reason: str


ParsedPlatform = Recognized | Unrecognized


def parse_platform_url(value: str) -> ParsedPlatform:
    """Turn a social-platform URL into a (platform, id) binding key.

    Total: every input yields either Recognized or Unrecognized.
    """
    raw = value.strip()
    parts = urlsplit(raw)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return Unrecognized(raw, "not an http(s) URL")

    host = parts.hostname.lower().removeprefix("www.").removeprefix("m.")
    path = parts.path.strip("/")
    segments = [s for s in path.split("/") if s]

    if host in ("youtube.com", "youtu.be") or host.endswith(".youtube.com"):
        video_id = parse_qs(parts.query).get("v", [""])[0]
        if not video_id and segments:
            video_id = segments[-1]
        return _recognized(Platform.YOUTUBE, video_id, raw)
    if host == "tiktok.com" or host.endswith(".tiktok.com"):
        return _recognized(Platform.TIKTOK, path, raw)
    if host in ("x.com", "twitter.com"):
        if "status" in segments:
            idx = segments.index("status")
            if idx + 1 < len(segments):
                return _recognized(Platform.X, segments[idx + 1], raw)
        return _recognized(Platform.X, path, raw)
    if host == "instagram.com":
        return _recognized(Platform.INSTAGRAM, path, raw)
    if host == "vimeo.com" or host.endswith(".vimeo.com"):
        return _recognized(Platform.VIMEO, segments[-1] if segments else "", raw)
    if host == "gist.github.com":
        return _recognized(Platform.GITHUB, f"gist/{path}" if path else "", raw)
    if host == "github.com":
        return _recognized(Platform.GITHUB, path, raw)
    if host in ("discord.com", "discord.gg"):
        return _recognized(Platform.DISCORD, path, raw)
    if host == "linkedin.com":
        return _recognized(Platform.LINKEDIN, path, raw)

    return Unrecognized(raw, f"unsupported platform host '{host}'")


def _recognized(platform: Platform, platform_id: str, raw: str) -> ParsedPlatform:
    if not platform_id:
        return Unrecognized(raw, f"no {platform.value} identifier in URL")
    return Recognized(platform, platform_id)
