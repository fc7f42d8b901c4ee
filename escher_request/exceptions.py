class EscherRequestError(Exception):
    pass


# Malformed integration list, fatal at startup
class ConfigError(EscherRequestError):
    pass


class CredentialError(EscherRequestError):
    pass


class CredentialNotFoundError(CredentialError):
    def __init__(self, target_url, key_hint=None):
        self.target_url = target_url
        self.key_hint = key_hint
        if key_hint is None:
            message = f'No escher credential configured for `{target_url}`'
        else:
            message = f'No escher credential matching key `{key_hint}` for `{target_url}`'
        super().__init__(message)


class AmbiguousCredentialError(CredentialError):
    def __init__(self, target_url, key_ids):
        self.target_url = target_url
        self.key_ids = list(key_ids)
        super().__init__(
            f'Cannot choose between escher credentials {", ".join(self.key_ids)} for `{target_url}`'
        )


class SigningInputError(EscherRequestError):
    pass


# Bad per-call options
class InvalidRequestError(EscherRequestError):
    pass


class TransportError(EscherRequestError):
    pass
