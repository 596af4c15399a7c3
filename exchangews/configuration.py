import logging

from cached_property import threaded_cached_property

from .credentials import BaseCredentials, OAuth2Credentials, BearerTokenCredentials
from .protocol import RetryPolicy, FailFast
from .transport import AUTH_TYPE_MAP, OAUTH2
from .util import split_url
from .version import Version

log = logging.getLogger(__name__)

ENDPOINT_TEMPLATE = 'https://%s/EWS/Exchange.asmx'


def _check_type(name, value, cls, cls_name):
    if value is not None and not isinstance(value, cls):
        raise ValueError("'%s' %r must be a %s instance" % (name, value, cls_name))


class Configuration:
    """Where and how to connect to an EWS endpoint. Give either a bare host name in 'server' or a full URL in
    'service_endpoint':

        Configuration(server='mail.example.com', credentials=Credentials('john@example.com', 'MY_SECRET'))
        Configuration(service_endpoint='https://mail.example.com/EWS/Exchange.asmx', credentials=...)

    'auth_type' and 'version' are hints. When given, the protocol skips probing the server for them. Token-based
    credentials always authenticate with OAUTH2.

    'retry_policy' decides what happens when the server is unavailable or throttling us. The default is to fail fast.
    'max_connections' caps the number of concurrent sessions to the server.
    """
    def __init__(self, credentials=None, server=None, service_endpoint=None, auth_type=None, version=None,
                 retry_policy=None, max_connections=None):
        _check_type('credentials', credentials, BaseCredentials, 'Credentials')
        _check_type('version', version, Version, 'Version')
        _check_type('retry_policy', retry_policy, RetryPolicy, 'RetryPolicy')
        if server and service_endpoint:
            raise AttributeError("Only one of 'server' or 'service_endpoint' must be provided")
        if auth_type is None and isinstance(credentials, (OAuth2Credentials, BearerTokenCredentials)):
            auth_type = OAUTH2
        if auth_type is not None and auth_type not in AUTH_TYPE_MAP:
            raise ValueError("'auth_type' %r must be one of %s"
                             % (auth_type, ', '.join("'%s'" % k for k in sorted(AUTH_TYPE_MAP))))
        if max_connections is not None:
            if not isinstance(max_connections, int):
                raise ValueError("'max_connections' %r must be an integer" % max_connections)
            if max_connections < 1:
                raise ValueError("'max_connections' must be a positive integer")
        self._credentials = credentials
        self.service_endpoint = ENDPOINT_TEMPLATE % server if server else service_endpoint
        self.auth_type = auth_type
        self.version = version
        self.retry_policy = retry_policy or FailFast()
        self.max_connections = max_connections

    @property
    def credentials(self):
        # Read-only here. Protocol.credentials replaces them and resets the session pool.
        return self._credentials

    @threaded_cached_property
    def server(self):
        if self.service_endpoint:
            return split_url(self.service_endpoint)[1]
        return None

    def __repr__(self):
        args = ('credentials', 'service_endpoint', 'auth_type', 'version', 'retry_policy', 'max_connections')
        return '%s(%s)' % (self.__class__.__name__, ', '.join('%s=%r' % (k, getattr(self, k)) for k in args))
