"""Device and environment probe: pure functions over user agent, URL and referrer."""

import re
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import parse_qs, urlsplit

from tracker.schemas import BrowserInfo, CampaignData, DeviceInfo, DeviceType, TrafficInfo, TrafficSource

# Tablet patterns overlap the mobile ones (Android, iPad), so tablet is checked first.
TABLET_PATTERN = re.compile(r"iPad|Android(?=.*\bMobile\b)(?=.*\bSafari\b)|KFAPWI", re.IGNORECASE)
MOBILE_PATTERN = re.compile(r"Android|webOS|iPhone|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)
MOBILE_FLAG_PATTERN = re.compile(
    r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE
)

# First match wins.
BROWSER_SIGNATURES: tuple[tuple[str, re.Pattern], ...] = (
    ("Chrome", re.compile(r"Chrome/([0-9.]+)")),
    ("Firefox", re.compile(r"Firefox/([0-9.]+)")),
    ("Safari", re.compile(r"Version/([0-9.]+).*Safari")),
    ("Edge", re.compile(r"Edge/([0-9.]+)")),
    ("Opera", re.compile(r"Opera/([0-9.]+)")),
    ("Internet Explorer", re.compile(r"MSIE ([0-9.]+)")),
)

UTM_FIELDS = ("source", "medium", "campaign", "term", "content")

# Evaluated in this order; yahoo appears twice and resolves to search.
SEARCH_ENGINES = ("google", "bing", "yahoo", "duckduckgo", "baidu", "yandex")
SOCIAL_PLATFORMS = (
    "facebook", "twitter", "instagram", "linkedin", "tiktok",
    "youtube", "pinterest", "snapchat", "reddit", "tumblr",
)
EMAIL_PROVIDERS = ("gmail", "outlook", "yahoo", "mail", "webmail")

REFERRER_CLASSES = (
    (TrafficSource.SEARCH, SEARCH_ENGINES),
    (TrafficSource.SOCIAL, SOCIAL_PLATFORMS),
    (TrafficSource.EMAIL, EMAIL_PROVIDERS),
)


@dataclass
class Environment:
    """The client signals the tracker reads. One instance per page context."""

    user_agent: str = ""
    platform: str = ""
    url: str = ""
    referrer: str = ""
    screen_width: int | None = None
    screen_height: int | None = None
    do_not_track: str | None = None
    # False during a server-side rendering pass: no client storage exists.
    client_side: bool = True

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], url: str, **overrides) -> "Environment":
        """Build an environment from the headers of the request being rendered."""
        lowered = {k.lower(): v for k, v in headers.items()}
        platform = lowered.get("sec-ch-ua-platform", "").strip('"')
        env = cls(
            user_agent=lowered.get("user-agent", ""),
            platform=platform,
            url=url,
            referrer=lowered.get("referer", ""),
            do_not_track=lowered.get("dnt"),
        )
        for name, value in overrides.items():
            setattr(env, name, value)
        return env


def device_type(user_agent: str) -> DeviceType:
    if TABLET_PATTERN.search(user_agent or ""):
        return DeviceType.TABLET
    if MOBILE_PATTERN.search(user_agent or ""):
        return DeviceType.MOBILE
    return DeviceType.DESKTOP


def is_mobile(user_agent: str) -> bool:
    """The coarse mobile flag stored on the session (counts tablets as mobile)."""
    return bool(MOBILE_FLAG_PATTERN.search(user_agent or ""))


def device_info(env: Environment) -> DeviceInfo:
    return DeviceInfo(
        user_agent=env.user_agent,
        platform=env.platform,
        is_mobile=is_mobile(env.user_agent),
    )


def browser_info(user_agent: str) -> BrowserInfo:
    for name, pattern in BROWSER_SIGNATURES:
        match = pattern.search(user_agent or "")
        if match:
            return BrowserInfo(name=name, version=match.group(1))
    return BrowserInfo()


def screen_resolution(width: int | None, height: int | None) -> str:
    if not width or not height:
        return "unknown"
    return f"{width}x{height}"


def scroll_percent(scroll_top: float, scroll_height: float, viewport_height: float) -> int:
    """Scroll position as a percentage of the scrollable distance, clamped to [0, 100]."""
    scrollable = scroll_height - viewport_height
    if scrollable <= 0:
        return 0
    return max(0, min(100, round(scroll_top / scrollable * 100)))


def traffic_source(url: str, referrer: str | None) -> TrafficInfo:
    """
    Attribute the visit: UTM-tagged → paid, no referrer → direct, otherwise
    classify the referrer's host (search, social, email, else referral).
    Unparseable input falls back to direct and never raises.
    """
    try:
        params = parse_qs(urlsplit(url or "").query)
        utm = {field: params.get(f"utm_{field}", [None])[0] for field in UTM_FIELDS}
        if utm["source"]:
            return TrafficInfo(source=TrafficSource.PAID, campaign_data=CampaignData(**utm))

        if not referrer:
            return TrafficInfo(source=TrafficSource.DIRECT)

        hostname = urlsplit(referrer).hostname
        if not hostname:
            return TrafficInfo(source=TrafficSource.DIRECT)
        hostname = hostname.lower()
    except ValueError:
        return TrafficInfo(source=TrafficSource.DIRECT)

    for source, keywords in REFERRER_CLASSES:
        if any(keyword in hostname for keyword in keywords):
            return TrafficInfo(source=source)
    return TrafficInfo(source=TrafficSource.REFERRAL)
