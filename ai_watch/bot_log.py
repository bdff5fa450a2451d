from __future__ import annotations

import gzip
import logging
import re
import zlib
from pathlib import Path

from ai_watch.models import BotSignature, BotStat

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

# Order matters: a line is attributed to the first signature that matches,
# so product-specific tokens come before the generic crawler they extend.
_DEFAULT_SIGNATURE_SPECS: tuple[tuple[str, str], ...] = (
    # AI crawlers and assistants
    ("GPTBot", r"GPTBot"),
    ("OAI-SearchBot", r"OAI-SearchBot"),
    ("ChatGPT-User", r"ChatGPT-User"),
    ("ClaudeBot", r"ClaudeBot"),
    ("Claude-Web", r"Claude-Web|Claude-User|Claude-SearchBot"),
    ("anthropic-ai", r"anthropic-ai"),
    ("PerplexityBot", r"PerplexityBot"),
    ("Perplexity-User", r"Perplexity-User"),
    ("Google-Extended", r"Google-Extended"),
    ("Applebot-Extended", r"Applebot-Extended"),
    ("CCBot", r"CCBot"),
    ("Bytespider", r"Bytespider"),
    ("Amazonbot", r"Amazonbot"),
    ("meta-externalagent", r"meta-external(agent|fetcher)"),
    ("cohere-ai", r"cohere-ai"),
    ("Diffbot", r"Diffbot"),
    # Search engines
    ("Googlebot", r"Googlebot"),
    ("Bingbot", r"bingbot"),
    ("YandexBot", r"YandexBot"),
    ("DuckDuckBot", r"DuckDuckBot"),
    ("Baiduspider", r"Baiduspider"),
    ("Applebot", r"Applebot"),
    ("SeznamBot", r"SeznamBot"),
    # Link preview bots
    ("facebookexternalhit", r"facebookexternalhit|facebookcatalog"),
    ("Twitterbot", r"Twitterbot"),
    ("LinkedInBot", r"LinkedInBot"),
    ("Slackbot", r"Slackbot"),
    ("Discordbot", r"Discordbot"),
    ("TelegramBot", r"TelegramBot"),
    ("WhatsApp", r"WhatsApp"),
    # SEO crawlers
    ("AhrefsBot", r"AhrefsBot"),
    ("SemrushBot", r"SemrushBot"),
    ("MJ12bot", r"MJ12bot"),
    ("DotBot", r"DotBot"),
    ("Screaming Frog", r"Screaming Frog"),
    ("rogerbot", r"rogerbot"),
)

DEFAULT_BOT_SIGNATURES: tuple[BotSignature, ...] = tuple(
    BotSignature.from_regex(name, regex) for name, regex in _DEFAULT_SIGNATURE_SPECS
)

_QUOTED_RE = re.compile(r'"([^"]*)"')
_TIMESTAMP_RE = re.compile(r"\[(.*?)\]")


def build_signatures(extra_tokens: tuple[str, ...] = ()) -> list[BotSignature]:
    """Built-in table followed by one literal, case-insensitive signature per extra token."""
    signatures = list(DEFAULT_BOT_SIGNATURES)
    known = {signature.name.lower() for signature in signatures}
    for token in extra_tokens:
        name = token.strip()
        if not name or name.lower() in known:
            continue
        known.add(name.lower())
        signatures.append(BotSignature.from_regex(name, re.escape(name)))
    return signatures


def extract_user_agent(line: str) -> str:
    # Combined log format: the user agent is the last quoted field, even when
    # unquoted fields such as request time follow it.
    quoted = _QUOTED_RE.findall(line)
    if not quoted:
        return ""
    value = quoted[-1].strip()
    return "" if value == "-" else value


def extract_timestamp(line: str) -> str | None:
    match = _TIMESTAMP_RE.search(line)
    return match.group(1) if match else None


def classify_user_agent(user_agent: str, signatures: list[BotSignature]) -> str | None:
    for signature in signatures:
        if signature.matches(user_agent):
            return signature.name
    return None


def aggregate_bot_hits(lines: list[str], signatures: list[BotSignature]) -> list[BotStat]:
    """Count hits per bot over ``lines`` given newest-first.

    ``last_seen`` is taken from the first matching line, so callers pass lines in
    reverse file order to get the most recent sighting.
    """
    stats = {signature.name: BotStat(name=signature.name) for signature in signatures}
    for line in lines:
        user_agent = extract_user_agent(line)
        if not user_agent:
            continue
        name = classify_user_agent(user_agent, signatures)
        if name is None:
            continue
        stat = stats[name]
        stat.hits += 1
        if stat.last_seen is None:
            stat.last_seen = extract_timestamp(line)
    return [stat for stat in stats.values() if stat.hits > 0]


def read_log_lines(path: Path) -> list[str]:
    with path.open("rb") as handle:
        head = handle.read(2)
    if path.suffix == ".gz" or head == GZIP_MAGIC:
        with gzip.open(path, "rt", encoding="utf-8", errors="replace") as handle:
            text = handle.read()
    else:
        text = path.read_text(encoding="utf-8", errors="replace")
    return [line for line in text.splitlines() if line.strip()]


class BotLogScanner:
    def __init__(
        self,
        log_path: str,
        signatures: list[BotSignature] | None = None,
        max_lines: int | None = None,
    ) -> None:
        self.log_path = log_path
        self.signatures = list(signatures) if signatures is not None else list(DEFAULT_BOT_SIGNATURES)
        self.max_lines = max_lines if max_lines and max_lines > 0 else None

    def scan(self) -> list[BotStat]:
        if not self.log_path:
            logger.info("LOG_PATH not set, skipping bot analysis.")
            return []

        try:
            lines = read_log_lines(Path(self.log_path))
        except (OSError, EOFError, zlib.error) as exc:
            logger.warning("Log read failed for %s: %s", self.log_path, exc)
            return []

        lines.reverse()
        if self.max_lines is not None:
            lines = lines[: self.max_lines]

        bots = aggregate_bot_hits(lines, self.signatures)
        logger.info("Bots: %d types seen in %d lines.", len(bots), len(lines))
        return bots
