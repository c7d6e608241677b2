"""Loading Clash-style proxy catalogs.

A catalog source is a local file or an ``http(s)`` URL holding a YAML
document with a ``proxies`` list and/or a ``proxy-providers`` mapping. The
whole document may be base64 encoded. Sources are merged in order into a
single name-keyed catalog, after which the name and protocol filters are
applied.
"""
from __future__ import annotations

import ipaddress
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiohttp
import yaml

from ..constants import (
    ALLOWED_PROXY_TYPES,
    DEFAULT_FILTER_REGEX,
    RESERVED_PROVIDER_NAME,
    STASH_SS_CIPHERS,
)
from ..exceptions import LoadError, TunnelError
from ..tunnel.dialers import BridgeFactory
from ..tunnel.identity import ProxyIdentity
from .fetch import fetch_text, maybe_decode_base64

logger = logging.getLogger(__name__)

ProxyCatalog = Dict[str, ProxyIdentity]


def split_sources(config_paths: str) -> List[str]:
    """Split a comma-separated source list, dropping quotes and blanks."""
    sources = []
    for raw in config_paths.split(","):
        source = raw.strip()
        if len(source) >= 2 and source[0] == source[-1] and source[0] in "\"'":
            source = source[1:-1].strip()
        if source:
            sources.append(source)
    return sources


def normalize_server(server: Any) -> Any:
    """Convert an IPv4-mapped IPv6 address to plain IPv4."""
    if not isinstance(server, str) or not server.lower().startswith("::ffff:"):
        return server
    try:
        mapped = ipaddress.IPv6Address(server).ipv4_mapped
    except ValueError:
        return server
    return str(mapped) if mapped else server


def is_stash_compatible(proxy_type: str, config: Dict[str, Any]) -> bool:
    """Whether Stash can import this proxy entry."""
    if proxy_type == "ss":
        return config.get("cipher") in STASH_SS_CIPHERS
    return proxy_type in ("vmess", "trojan", "http", "socks5")


def parse_document(text: str, origin: str) -> Dict[str, Any]:
    """Parse a (possibly base64-wrapped) YAML catalog document.

    Raises:
        LoadError: if the YAML is malformed.
    """
    body = maybe_decode_base64(text)
    try:
        data = yaml.safe_load(body)
    except yaml.YAMLError as exc:
        raise LoadError(f"failed to parse {origin}: {exc}") from exc
    if not isinstance(data, dict):
        logger.debug("Catalog %s has no mapping at the top level", origin)
        return {}
    return data


def _entry_name(index: int, entry: Any, origin: str) -> str:
    if not isinstance(entry, dict):
        raise LoadError(f"proxy {index}: entry in {origin} is not a mapping")
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise LoadError(f"proxy {index}: missing name in {origin}")
    if not entry.get("type"):
        raise LoadError(f"proxy {index}: missing type for {name!r} in {origin}")
    return name


def _direct_proxies(entries: Any, origin: str) -> Dict[str, Dict[str, Any]]:
    proxies: Dict[str, Dict[str, Any]] = {}
    for index, entry in enumerate(entries or []):
        name = _entry_name(index, entry, origin)
        if name in proxies:
            raise LoadError(f"proxy {name} is the duplicate name")
        proxies[name] = dict(entry)
    return proxies


class CatalogLoader:
    """Reads sources and merges them into one :data:`ProxyCatalog`."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        stash_compatible: bool = False,
        bridges: Optional[BridgeFactory] = None,
        fetch_timeout: float = 30,
    ):
        self.session = session
        self.stash_compatible = stash_compatible
        self.bridges = bridges or BridgeFactory()
        self.fetch_timeout = fetch_timeout

    async def read_source(self, source: str) -> Optional[str]:
        if source.startswith("http"):
            logger.debug("Fetching catalog via HTTP: %s", source)
            return await fetch_text(self.session, source, self.fetch_timeout)
        try:
            return Path(source).expanduser().read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read catalog %s: %s", source, exc)
            return None

    async def _provider_proxies(
        self, name: str, provider: Any, origin: str
    ) -> Dict[str, Dict[str, Any]]:
        if not isinstance(provider, dict):
            raise LoadError(f"parse proxy provider {name} error: not a mapping")
        location = provider.get("url") or provider.get("path")
        if not location:
            raise LoadError(f"parse proxy provider {name} error: missing url or path")

        text = await self.read_source(str(location))
        if text is None:
            logger.warning("Skipping provider %s from %s: unreachable", name, origin)
            return {}

        document = parse_document(text, f"provider {name}")
        proxies: Dict[str, Dict[str, Any]] = {}
        for index, entry in enumerate(document.get("proxies") or []):
            entry_name = _entry_name(index, entry, f"provider {name}")
            proxies[f"[{name}] {entry_name}"] = dict(entry)
        logger.info("Provider %s loaded %d proxies", name, len(proxies))
        return proxies

    async def load_source(self, source: str) -> Dict[str, Dict[str, Any]]:
        """Return the raw entries of one source, or ``{}`` if it is unreachable."""
        text = await self.read_source(source)
        if text is None:
            logger.warning("Skipping unreachable catalog %s", source)
            return {}

        document = parse_document(text, source)
        proxies = _direct_proxies(document.get("proxies"), source)

        providers = document.get("proxy-providers") or {}
        if not isinstance(providers, dict):
            raise LoadError(f"proxy-providers in {source} is not a mapping")
        for name, provider in providers.items():
            if name == RESERVED_PROVIDER_NAME:
                raise LoadError(f"can not define a provider called `{RESERVED_PROVIDER_NAME}`")
            for key, entry in (await self._provider_proxies(str(name), provider, source)).items():
                proxies.setdefault(key, entry)

        logger.info(
            "Catalog %s parsed: %d entries from %d providers",
            source,
            len(proxies),
            len(providers),
        )
        return proxies

    def _accept(self, key: str, config: Dict[str, Any]) -> bool:
        proxy_type = str(config.get("type", "")).lower()
        if proxy_type not in ALLOWED_PROXY_TYPES:
            logger.debug("Skipping %s: unsupported type %s", key, proxy_type)
            return False
        if self.stash_compatible and not is_stash_compatible(proxy_type, config):
            logger.debug("Skipping %s: not compatible with Stash", key)
            return False
        return True

    async def load(self, sources: Iterable[str]) -> ProxyCatalog:
        catalog: ProxyCatalog = {}
        for source in sources:
            added = 0
            for key, config in (await self.load_source(source)).items():
                if "server" in config:
                    config["server"] = normalize_server(config["server"])
                if not self._accept(key, config):
                    continue
                if key in catalog:
                    logger.debug("Skipping duplicate proxy %s from %s", key, source)
                    continue
                try:
                    catalog[key] = ProxyIdentity.from_config(key, config, self.bridges)
                except (TunnelError, TypeError, ValueError) as exc:
                    raise LoadError(f"proxy {key}: {exc}") from exc
                added += 1
            logger.debug("Added %d proxies from %s", added, source)
        return catalog


def _clean(values: Optional[Sequence[str]]) -> List[str]:
    return [v.strip().lower() for v in values or () if v and v.strip()]


def filter_catalog(
    catalog: ProxyCatalog,
    *,
    filter_regex: str = DEFAULT_FILTER_REGEX,
    include_nodes: Optional[Sequence[str]] = None,
    exclude_nodes: Optional[Sequence[str]] = None,
    protocol_filter: Optional[Sequence[str]] = None,
) -> ProxyCatalog:
    """Keep the proxies that pass every active filter.

    The name must match ``filter_regex``, contain at least one include
    substring and none of the exclude substrings, and the type must be in
    ``protocol_filter``. Substring and protocol checks ignore case; empty
    lists disable their filter.
    """
    pattern = re.compile(filter_regex or DEFAULT_FILTER_REGEX)
    includes = _clean(include_nodes)
    excludes = _clean(exclude_nodes)
    protocols = _clean(protocol_filter)

    filtered: ProxyCatalog = {}
    for name, proxy in catalog.items():
        lowered = name.lower()
        if not pattern.search(name):
            continue
        if includes and not any(token in lowered for token in includes):
            continue
        if excludes and any(token in lowered for token in excludes):
            continue
        if protocols and proxy.type.lower() not in protocols:
            continue
        filtered[name] = proxy
    return filtered


async def load_proxies(
    config_paths: str,
    *,
    stash_compatible: bool = False,
    filter_regex: str = DEFAULT_FILTER_REGEX,
    include_nodes: Optional[Sequence[str]] = None,
    exclude_nodes: Optional[Sequence[str]] = None,
    protocol_filter: Optional[Sequence[str]] = None,
    session: Optional[aiohttp.ClientSession] = None,
    bridges: Optional[BridgeFactory] = None,
) -> ProxyCatalog:
    """Load, merge and filter the catalogs named in ``config_paths``.

    Unreachable sources are skipped; an empty result is not an error.

    Raises:
        LoadError: on malformed YAML, a reserved provider name, an invalid
            entry or a duplicate name within one source's proxy list.
    """
    sources = split_sources(config_paths)
    logger.info("Loading proxies from %d source(s)", len(sources))

    own_session = session is None
    if session is None:
        session = aiohttp.ClientSession()
    try:
        loader = CatalogLoader(session, stash_compatible=stash_compatible, bridges=bridges)
        catalog = await loader.load(sources)
    finally:
        if own_session:
            await session.close()

    filtered = filter_catalog(
        catalog,
        filter_regex=filter_regex,
        include_nodes=include_nodes,
        exclude_nodes=exclude_nodes,
        protocol_filter=protocol_filter,
    )
    logger.info(
        "Proxy loading completed: %d loaded, %d after filters", len(catalog), len(filtered)
    )
    return filtered


async def load_catalog(config: Any, **kwargs: Any) -> ProxyCatalog:
    """Load the catalog described by a :class:`~proxyspeed.config.TestConfig`."""
    return await load_proxies(
        config.config_paths,
        stash_compatible=config.stash_compatible,
        filter_regex=config.filter_regex,
        include_nodes=config.include_nodes,
        exclude_nodes=config.exclude_nodes,
        protocol_filter=config.protocol_filter,
        **kwargs,
    )


def available_protocols(catalog: ProxyCatalog) -> List[str]:
    """Return the distinct proxy types present in ``catalog``, sorted."""
    return sorted({proxy.type for proxy in catalog.values()})
