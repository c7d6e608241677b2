from __future__ import annotations

import re

CONFIG_FILE_NAME = "proxyspeed.yaml"

DEFAULT_SERVER_URL = "https://speed.cloudflare.com"
DEFAULT_FILTER_REGEX = ".+"

# Test modes
MODE_SPEED_ONLY = "speed_only"
MODE_UNLOCK_ONLY = "unlock_only"
MODE_BOTH = "both"
TEST_MODES = (MODE_SPEED_ONLY, MODE_UNLOCK_ONLY, MODE_BOTH)

# Protocol with slow, unstable handshakes; probed with fewer samples and
# a throttled upload body.
SLOW_PROTOCOL = "vless"
SLOW_LATENCY_ATTEMPTS = 3
LATENCY_ATTEMPTS = 6
SLOW_UPLOAD_CHUNK = 256 * 1024
SLOW_UPLOAD_DELAY = 0.001
SLOW_UPLOAD_MAX_WORKERS = 3
SLOW_MIN_LATENCY_TIMEOUT = 10.0

MEGABYTE = 1024 * 1024

# Protocol types kept by the catalog loader. ``direct`` dials the target
# without any upstream and is used for local runs.
ALLOWED_PROXY_TYPES = frozenset(
    {
        "ss",
        "ssr",
        "snell",
        "socks5",
        "http",
        "vmess",
        "vless",
        "trojan",
        "hysteria",
        "hysteria2",
        "wireguard",
        "tuic",
        "ssh",
        "mieru",
        "anytls",
        "direct",
    }
)

RESERVED_PROVIDER_NAME = "default"

STASH_SS_CIPHERS = frozenset(
    {"aes-128-gcm", "aes-192-gcm", "aes-256-gcm", "chacha20-ietf-poly1305"}
)

# Unlock defaults
DEFAULT_UNLOCK_PLATFORMS = ("Netflix", "YouTube", "Disney+", "ChatGPT", "Spotify", "Bilibili")
DEFAULT_UNLOCK_CONCURRENT = 5
MAX_UNLOCK_CONCURRENT = 20
DEFAULT_UNLOCK_TIMEOUT = 10
MAX_UNLOCK_TIMEOUT = 60
DEFAULT_PLATFORM_PRIORITY = 3
UNLOCK_MAX_RETRIES = 2
UNLOCK_CACHE_TTL = 30 * 60
UNLOCK_CACHE_SWEEP_INTERVAL = 10 * 60

BASE64_RE = re.compile(r"^[A-Za-z0-9+/=_\-\s]+$")
CONFIG_MARKERS = ("proxies:", "proxy-providers:")
