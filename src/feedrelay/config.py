"""Configuration for Feed Relay.

Everything comes from environment variables with sensible defaults, so a
scheduled run needs nothing but ``RELAY_DB_PATH`` and ``DISCORD_BOT_TOKEN``.
Tests build ``Settings`` directly and pass it where it is needed.
"""

import os
from dataclasses import dataclass


DEFAULT_DB_PATH = "feedrelay.db"
DEFAULT_API_BASE = "https://discord.com/api/v10"
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; FeedRelay/1.0; feed-to-chat relay)"
DEFAULT_POLL_INTERVAL = 900  # 15 minutes


@dataclass(frozen=True)
class FeedSource:
    """A (name, url) pair from the default catalog."""

    name: str
    url: str


DEFAULT_CATALOG: tuple[FeedSource, ...] = (
    FeedSource("NAVER D2", "https://d2.naver.com/d2.atom"),
    FeedSource("토스 테크", "https://toss.tech/rss.xml"),
    FeedSource("컬리 기술 블로그", "https://helloworld.kurly.com/feed.xml"),
    FeedSource("MUSINSA tech", "https://medium.com/feed/musinsa-tech"),
    FeedSource("당근 테크 블로그", "https://medium.com/feed/daangn"),
    FeedSource("뱅크샐러드 블로그", "https://blog.banksalad.com/rss.xml"),
    FeedSource("요기요 기술블로그", "https://techblog.yogiyo.co.kr/feed"),
    FeedSource("Hyperconnect Tech Blog", "https://hyperconnect.github.io/feed.xml"),
    FeedSource("LY Corporation Tech Blog", "https://techblog.lycorp.co.jp/ko/feed/index.xml"),
    FeedSource("강남언니 블로그", "https://blog.gangnamunni.com/feed.xml"),
    FeedSource("데브시스터즈 기술 블로그", "https://tech.devsisters.com/rss.xml"),
    FeedSource("SOCAR Tech Blog", "https://tech.socarcorp.kr/feed"),
    FeedSource("NHN Cloud Meetup", "https://meetup.nhncloud.com/rss"),
    FeedSource("ByteByteGo Newsletter", "https://blog.bytebytego.com/feed"),
    FeedSource("Netflix TechBlog", "https://netflixtechblog.com/feed"),
    FeedSource("The GitHub Blog", "https://github.blog/engineering/feed"),
    FeedSource("Engineering at Slack", "https://slack.engineering/feed"),
    FeedSource("The Airbnb Tech Blog", "https://medium.com/feed/airbnb-engineering"),
    FeedSource("Spotify Engineering", "https://engineering.atspotify.com/feed"),
    FeedSource("Pinterest Engineering", "https://medium.com/feed/@Pinterest_Engineering"),
)


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class Settings:
    """Runtime settings for one relay process."""

    db_path: str = DEFAULT_DB_PATH
    bot_token: str = ""
    api_base: str = DEFAULT_API_BASE
    default_destination_ids: tuple[str, ...] = ()
    catalog: tuple[FeedSource, ...] = DEFAULT_CATALOG
    max_concurrency: int = 3
    request_timeout: float = 30.0
    retry_backoff: float = 2.0
    send_pause: float = 0.5
    fetch_pause: float = 0.25
    seed_pause: float = 0.1
    run_timeout: float | None = None
    poll_interval: int = DEFAULT_POLL_INTERVAL
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Raises:
            ConfigError: If a numeric variable cannot be parsed or is out of range.
        """
        env = os.environ if environ is None else environ

        run_timeout = env.get("RELAY_RUN_TIMEOUT")
        settings = cls(
            db_path=env.get("RELAY_DB_PATH", DEFAULT_DB_PATH),
            bot_token=env.get("DISCORD_BOT_TOKEN", ""),
            api_base=env.get("DISCORD_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            default_destination_ids=parse_id_list(env.get("DEFAULT_DESTINATION_IDS", "")),
            max_concurrency=_number(env, "RELAY_MAX_CONCURRENCY", 3, int),
            request_timeout=_number(env, "RELAY_REQUEST_TIMEOUT", 30.0, float),
            retry_backoff=_number(env, "RELAY_RETRY_BACKOFF", 2.0, float),
            send_pause=_number(env, "RELAY_SEND_PAUSE", 0.5, float),
            fetch_pause=_number(env, "RELAY_FETCH_PAUSE", 0.25, float),
            seed_pause=_number(env, "RELAY_SEED_PAUSE", 0.1, float),
            run_timeout=_number(env, "RELAY_RUN_TIMEOUT", 0.0, float) if run_timeout else None,
            poll_interval=_number(env, "RELAY_POLL_INTERVAL", DEFAULT_POLL_INTERVAL, int),
            user_agent=env.get("RELAY_USER_AGENT", DEFAULT_USER_AGENT),
        )
        if settings.max_concurrency < 1:
            raise ConfigError("RELAY_MAX_CONCURRENCY must be at least 1")
        return settings


def parse_id_list(raw: str) -> tuple[str, ...]:
    """Split a comma-separated id list, dropping blanks."""
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _number(env, name: str, default, kind):
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        parsed = kind(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if parsed < 0:
        raise ConfigError(f"{name} must not be negative")
    return parsed
