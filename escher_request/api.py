from typing import Type, TypeVar, Optional, Dict, List
from urllib.parse import urlsplit

from schematics import Model
from schematics.common import NOT_NONE
from schematics.types import StringType, BooleanType, DictType, BaseType, IntType, FloatType, ListType
from schematics.exceptions import DataError, ValidationError
from schematics.types.base import TypeMeta


# Inheriting this class will make an enum exhaustive
class EnumMeta(TypeMeta):
    def __new__(mcs, name, bases, attrs):
        attrs['choices'] = [v for k, v in attrs.items() if not k.startswith('_') and k.isupper()]
        return TypeMeta.__new__(mcs, name, bases, attrs)


class HashAlgorithm(StringType, metaclass=EnumMeta):
    SHA256 = 'SHA256'
    SHA512 = 'SHA512'


class HttpMethod(StringType, metaclass=EnumMeta):
    GET = 'GET'
    HEAD = 'HEAD'
    POST = 'POST'
    PUT = 'PUT'
    PATCH = 'PATCH'
    DELETE = 'DELETE'
    OPTIONS = 'OPTIONS'


# One entry of the integration list, as found in `ESCHER_INTEGRATIONS`
class IntegrationConfig(Model):
    # Left empty for inline credentials, which are never validated
    service_url = StringType(required=True, serialized_name='serviceUrl')
    credential_scope = StringType(required=True, min_length=1, serialized_name='credentialScope')
    key_id = StringType(required=True, min_length=1, serialized_name='keyId')
    secret = StringType(required=True, min_length=1)
    accept_only = BooleanType(default=False, serialized_name='acceptOnly')

    class Options:
        export_level = NOT_NONE

    def validate_service_url(self, data, value):
        if value is None:
            return value
        parts = urlsplit(value)
        if not parts.scheme or not parts.hostname:
            raise ValidationError(f'Service url must be absolute, got `{value}`.')
        try:
            parts.port
        except ValueError:
            raise ValidationError(f'Service url has an invalid port, got `{value}`.')
        return value

    def __repr__(self):
        # Never include the secret
        return f'<IntegrationConfig: {self.key_id} {self.service_url}>'


class SigningConfig(Model):
    algo_prefix = StringType(default='EMS')
    hash_algo = HashAlgorithm(default=HashAlgorithm.SHA256)
    auth_header_name = StringType(default='x-ems-auth')
    date_header_name = StringType(default='x-ems-date')
    # Headers that must always be part of the signature, besides the date header
    required_headers: List[str] = ListType(StringType(), default=lambda: ['content-type', 'host'])
    default_content_type = StringType(default='application/json')
    clock_skew = IntType(default=300, min_value=0)

    @property
    def algorithm(self) -> str:
        return f'{self.algo_prefix}-HMAC-{self.hash_algo}'


# Per-call options, the camelCase names are accepted as aliases
class RequestOptions(Model):
    escher_key_id = StringType(default=None, deserialize_from='escherKeyId')
    escher_credential_scope = StringType(default=None, deserialize_from='escherCredentialScope')
    escher_secret = StringType(default=None, deserialize_from='escherSecret')
    headers: Optional[Dict[str, str]] = DictType(StringType(), default=None)
    data = BaseType(default=None)
    timeout = FloatType(default=None, min_value=0)
    max_content_length = IntType(default=None, min_value=0, deserialize_from='maxContentLength')
    max_redirects = IntType(default=None, min_value=0, deserialize_from='maxRedirects')

    class Options:
        export_level = NOT_NONE

    def get_headers(self) -> Dict[str, str]:
        return self.headers or {}

    def transport_options(self) -> dict:
        return {
            'timeout': self.timeout,
            'max_content_length': self.max_content_length,
            'max_redirects': self.max_redirects,
        }


class Response(Model):
    status = IntType(required=True)
    headers: Dict[str, str] = DictType(StringType(), default=dict)
    data = BaseType(default=None)
    # What was actually handed to the transport
    effective_config = DictType(BaseType, default=dict)


T = TypeVar('T', bound=Model)


def import_model(model_cls: Type[T], raw_data, error_cls: Type[Exception], strict=True) -> T:
    """
    Creates a Schematics Model from raw data and validates it.

    Raises `error_cls` (chained to the DataError) if invalid.
    """
    try:
        model = model_cls(raw_data, strict=strict)
        model.validate()
    except DataError as e:
        raise error_cls(f'Invalid {model_cls.__name__}: {e}') from e
    return model
