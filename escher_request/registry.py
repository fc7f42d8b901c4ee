import logging
import re
from collections.abc import Mapping
from typing import Iterator, List, Optional, Tuple
from urllib.parse import SplitResult, urlsplit

from escher_request.api import IntegrationConfig, import_model
from escher_request.exceptions import ConfigError, InvalidRequestError

_VERSION_SUFFIX = re.compile(r'_v(\d+)$')
_DEFAULT_PORTS = {'http': 80, 'https': 443}


def _port(parts: SplitResult) -> Optional[int]:
    try:
        return parts.port
    except ValueError as e:
        raise InvalidRequestError(f'Invalid port in url for host `{parts.hostname}`') from e


def host_of(url: str) -> str:
    """
    The `host[:port]` of an absolute url, without any userinfo.
    """
    parts = urlsplit(url)
    if not parts.hostname:
        raise InvalidRequestError(f'Url `{url}` has no host')

    host = parts.hostname
    if ':' in host:
        host = f'[{host}]'
    port = _port(parts)
    return host if port is None else f'{host}:{port}'


def origin(url: str) -> Optional[Tuple[str, str]]:
    """
    Returns the (scheme, host[:port]) pair used to match urls against service urls,
    or None for relative urls. Default ports are dropped.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return None

    scheme = parts.scheme.lower()
    host = parts.hostname.lower()
    port = _port(parts)
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f'{host}:{port}'
    return scheme, host


def strip_version(key_id: str) -> str:
    return _VERSION_SUFFIX.sub('', key_id)


def key_version(key_id: str) -> Optional[int]:
    match = _VERSION_SUFFIX.search(key_id)
    return int(match.group(1)) if match else None


class IntegrationRegistry:
    """
    The escher credentials known to the process. Built once from the integration
    list and never mutated; rebuild and swap the reference to reconfigure.
    """

    def __init__(self, integrations=()):
        self._integrations: Tuple[IntegrationConfig, ...] = tuple(integrations)

        seen = set()
        for integration in self._integrations:
            if integration.key_id in seen:
                raise ConfigError(f'Duplicate escher key id `{integration.key_id}`')
            seen.add(integration.key_id)

    @classmethod
    def build(cls, raw_config_list) -> 'IntegrationRegistry':
        if raw_config_list is None:
            return cls()

        if not isinstance(raw_config_list, (list, tuple)):
            raise ConfigError(f'Escher integrations must be a list, got {type(raw_config_list).__name__}')

        if not raw_config_list:
            return cls()

        integrations = []
        for index, record in enumerate(raw_config_list):
            if not isinstance(record, Mapping):
                raise ConfigError(f'Escher integration #{index} must be an object')
            integrations.append(import_model(IntegrationConfig, dict(record), ConfigError, strict=False))

        registry = cls(integrations)
        logging.info(f'Loaded {len(registry)} escher integration(s): '
                     f'{", ".join(i.key_id for i in registry)}')
        return registry

    def __len__(self):
        return len(self._integrations)

    def __iter__(self) -> Iterator[IntegrationConfig]:
        return iter(self._integrations)

    def lookup_by_host(self, url: str) -> List[IntegrationConfig]:
        target = origin(url)
        if target is None:
            return []
        return [i for i in self._integrations if origin(i.service_url) == target]

    def lookup_by_key_prefix(self, prefix: str) -> List[IntegrationConfig]:
        return [
            i for i in self._integrations
            if i.key_id == prefix or strip_version(i.key_id) == prefix
        ]

    def lookup_by_key_id(self, key_id: str) -> Optional[IntegrationConfig]:
        return next((i for i in self._integrations if i.key_id == key_id), None)
