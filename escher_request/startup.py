# The only place the environment is read; everything else gets its registry injected

import json
import logging
import os

from escher_request.client import EscherClient
from escher_request.exceptions import ConfigError
from escher_request.registry import IntegrationRegistry
from escher_request.transport import Transport

INTEGRATIONS_VARIABLE = 'ESCHER_INTEGRATIONS'


def _env(name, environ=None, default=None):
    environ = os.environ if environ is None else environ
    return environ.get(name, default)


def load_integrations(environ=None) -> IntegrationRegistry:
    raw = _env(INTEGRATIONS_VARIABLE, environ, '')
    if not raw.strip():
        return IntegrationRegistry()

    try:
        integrations = json.loads(raw)
    except ValueError as e:
        raise ConfigError(f'{INTEGRATIONS_VARIABLE} is not valid JSON: {e}') from e

    return IntegrationRegistry.build(integrations)


def configure_logging(environ=None):
    logging.basicConfig(level=_env('LOGLEVEL', environ, 'INFO'))


def client_from_environment(transport: Transport = None, environ=None) -> EscherClient:
    return EscherClient(load_integrations(environ), transport=transport)
