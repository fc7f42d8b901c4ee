import logging
from typing import List, NamedTuple, Optional, Union

from escher_request.api import IntegrationConfig, RequestOptions
from escher_request.exceptions import AmbiguousCredentialError, CredentialNotFoundError, InvalidRequestError
from escher_request.registry import IntegrationRegistry, key_version, origin


class CredentialResolver:
    def __init__(self, registry: IntegrationRegistry):
        self.registry = registry

    def resolve(self, target_url: str, explicit_key_hint: Optional[str] = None) -> IntegrationConfig:
        if explicit_key_hint:
            candidates = self.registry.lookup_by_key_prefix(explicit_key_hint)
            target = origin(target_url)
            if target is not None:
                candidates = [c for c in candidates if origin(c.service_url) == target]
        else:
            candidates = self.registry.lookup_by_host(target_url)

        # Accept-only credentials must be asked for by their full key id
        candidates = [c for c in candidates if not c.accept_only or c.key_id == explicit_key_hint]

        if not candidates:
            raise CredentialNotFoundError(target_url, explicit_key_hint)

        credential = candidates[0] if len(candidates) == 1 else self._select(target_url, explicit_key_hint, candidates)
        logging.debug(f'Using escher key `{credential.key_id}` for `{target_url}`')
        return credential

    @staticmethod
    def _select(target_url, explicit_key_hint, candidates: List[IntegrationConfig]) -> IntegrationConfig:
        exact = [c for c in candidates if c.key_id == explicit_key_hint]
        if exact:
            return exact[0]

        versions = [key_version(c.key_id) for c in candidates]
        if None in versions:
            raise AmbiguousCredentialError(target_url, [c.key_id for c in candidates])

        highest = max(versions)
        if versions.count(highest) > 1:
            raise AmbiguousCredentialError(target_url, [c.key_id for c in candidates])

        return candidates[versions.index(highest)]


class RegistryLookup(NamedTuple):
    target_url: str
    key_hint: Optional[str] = None

    def acquire(self, resolver: CredentialResolver) -> IntegrationConfig:
        return resolver.resolve(self.target_url, self.key_hint)


class InlineCredential(NamedTuple):
    key_id: str
    credential_scope: str
    secret: str

    def acquire(self, resolver: CredentialResolver) -> IntegrationConfig:
        # Bypasses the registry entirely, there is no service url to resolve paths against
        return IntegrationConfig({
            'key_id': self.key_id,
            'credential_scope': self.credential_scope,
            'secret': self.secret,
        })


CredentialSource = Union[RegistryLookup, InlineCredential]


def credential_source(target_url: str, options: RequestOptions) -> CredentialSource:
    inline = (options.escher_credential_scope, options.escher_secret)
    if all(inline) and options.escher_key_id:
        return InlineCredential(options.escher_key_id, *inline)

    if any(inline):
        raise InvalidRequestError(
            'escher_credential_scope and escher_secret must be given together with escher_key_id'
        )

    return RegistryLookup(target_url, options.escher_key_id)
