"""
Traffic classification - referrer and UTM parsing.

Derives {source, medium} for an event. This is the attribution ground truth
for every source and revenue report, so the result depends only on the
inputs and the (immutable) config passed in.

Rule order:
1. No referrer and no UTM -> direct / none
2. utm_source / utm_medium used verbatim (each wins individually)
3. Known hosts: social -> social, search -> organic, launch sites -> referral
4. Any other host -> {host, referral}
5. Malformed referrer -> unknown / unknown (never raises)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

# --- Mediums ---

MEDIUM_NONE = "none"
MEDIUM_SOCIAL = "social"
MEDIUM_ORGANIC = "organic"
MEDIUM_REFERRAL = "referral"
MEDIUM_UNKNOWN = "unknown"

SOURCE_DIRECT = "direct"
SOURCE_UNKNOWN = "unknown"


# --- Configuration ---


@dataclass(frozen=True)
class HostRule:
    """Maps a set of host patterns to a source label and medium."""

    source: str
    medium: str
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class ClassifierConfig:
    """
    Ordered host table.

    Patterns match the exact host or any subdomain of it. A pattern ending in
    ".*" matches that label under any TLD ("google.*" -> google.de,
    google.co.uk, news.google.com).
    """

    rules: tuple[HostRule, ...] = (
        # Social networks
        HostRule("facebook", MEDIUM_SOCIAL, ("facebook.com", "fb.com", "m.facebook.com")),
        HostRule("twitter", MEDIUM_SOCIAL, ("twitter.com", "x.com", "t.co")),
        HostRule("linkedin", MEDIUM_SOCIAL, ("linkedin.com", "lnkd.in")),
        HostRule("instagram", MEDIUM_SOCIAL, ("instagram.com",)),
        HostRule("reddit", MEDIUM_SOCIAL, ("reddit.com",)),
        HostRule("youtube", MEDIUM_SOCIAL, ("youtube.com", "youtu.be")),
        HostRule("tiktok", MEDIUM_SOCIAL, ("tiktok.com",)),
        # Search engines
        HostRule("google", MEDIUM_ORGANIC, ("google.*",)),
        HostRule("bing", MEDIUM_ORGANIC, ("bing.com",)),
        HostRule("duckduckgo", MEDIUM_ORGANIC, ("duckduckgo.com",)),
        HostRule("yahoo", MEDIUM_ORGANIC, ("yahoo.*",)),
        HostRule("baidu", MEDIUM_ORGANIC, ("baidu.com",)),
        # Launch / community boards
        HostRule("producthunt", MEDIUM_REFERRAL, ("producthunt.com",)),
        HostRule("hackernews", MEDIUM_REFERRAL, ("news.ycombinator.com", "hackernews.com")),
    )


DEFAULT_CONFIG = ClassifierConfig()


# --- Data Models ---


@dataclass(frozen=True)
class UTMParams:
    """UTM parameters as sent by the tracking script."""

    source: str | None = None
    medium: str | None = None
    campaign: str | None = None
    term: str | None = None
    content: str | None = None

    def has_any(self) -> bool:
        """Check if any UTM parameter is present."""
        return any([self.source, self.medium, self.campaign, self.term, self.content])


@dataclass(frozen=True)
class Classification:
    """Classifier output."""

    source: str
    medium: str
    referrer: str | None = None


# --- Parsing Functions ---


def _clean(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_utm_params(data: dict[str, Any]) -> UTMParams:
    """
    Read utm_* keys from a payload.

    Values are kept verbatim apart from surrounding whitespace; blank strings
    and non-strings count as absent.
    """
    return UTMParams(
        source=_clean(data.get("utm_source")),
        medium=_clean(data.get("utm_medium")),
        campaign=_clean(data.get("utm_campaign")),
        term=_clean(data.get("utm_term")),
        content=_clean(data.get("utm_content")),
    )


def normalize_host(url: str) -> str | None:
    """
    Extract the lower-cased hostname with a leading "www." removed.

    Returns None for anything without a usable host.
    """
    try:
        host = urlparse(url.strip()).hostname
    except ValueError:
        return None

    if not host:
        return None
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host or None


def host_matches(host: str, pattern: str) -> bool:
    """Check a hostname against a single table pattern."""
    if pattern.endswith(".*"):
        label = pattern[:-2]
        return f".{label}." in f".{host}"
    return host == pattern or host.endswith(f".{pattern}")


def classify_host(host: str, config: ClassifierConfig = DEFAULT_CONFIG) -> tuple[str, str]:
    """Classify a normalized hostname. First matching rule wins."""
    for rule in config.rules:
        if any(host_matches(host, pattern) for pattern in rule.patterns):
            return rule.source, rule.medium
    return host, MEDIUM_REFERRAL


def classify_referrer(
    referrer_url: str | None,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> tuple[str, str]:
    """Classify the referrer alone (rules 1, 3, 4, 5)."""
    cleaned = _clean(referrer_url)
    if cleaned is None:
        return SOURCE_DIRECT, MEDIUM_NONE

    host = normalize_host(cleaned)
    if host is None:
        return SOURCE_UNKNOWN, MEDIUM_UNKNOWN

    return classify_host(host, config)


def classify(
    referrer_url: str | None,
    utm: UTMParams | dict[str, Any] | None = None,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> Classification:
    """
    Derive {source, medium, referrer} for an event.

    Explicit UTM tagging wins over referrer inference, field by field.
    """
    if utm is None:
        utm = UTMParams()
    elif isinstance(utm, dict):
        utm = parse_utm_params(utm)

    referrer = _clean(referrer_url)
    source, medium = classify_referrer(referrer, config)

    return Classification(
        source=utm.source or source,
        medium=utm.medium or medium,
        referrer=referrer,
    )
