"""
A protocol is an EWS endpoint together with the credentials used to talk to it. It owns a pool of HTTP sessions and
the server version negotiated with the endpoint.

Protocols should be accessed through an Account. There is only one Protocol per (endpoint, credentials) pair, so all
accounts on the same server share connections.
"""
import datetime
import itertools
import logging
from threading import Lock
from queue import LifoQueue, Empty, Full

import requests.adapters
import requests.sessions
import requests.utils
from oauthlib.oauth2 import BackendApplicationClient, WebApplicationClient
from requests_oauthlib import OAuth2Session

from .credentials import OAuth2AuthorizationCodeCredentials, OAuth2Credentials, BearerTokenCredentials
from .errors import TransportError, SessionPoolMinSizeReached
from .transport import get_auth_instance, get_service_authtype, NTLM, GSSAPI, SSPI, OAUTH2, NOAUTH, DEFAULT_HEADERS
from .version import Version, API_VERSIONS

log = logging.getLogger(__name__)

# The API version used until the server has told us its real version
DEFAULT_API_VERSION = 'Exchange2016'

# OAuth 2.0 endpoints and scope for Office 365
OAUTH2_SCOPE = 'https://outlook.office365.com/.default'
OAUTH2_TOKEN_URL = 'https://login.microsoftonline.com/%s/oauth2/v2.0/token'  # nosec
# Lets Microsoft pick the tenant from the authorization code or token
OAUTH2_COMMON_TENANT = 'common'

# Auth types that work without a credentials object
ANONYMOUS_AUTH_TYPES = (GSSAPI, SSPI, NOAUTH)


def close_connections():
    CachingProtocol.clear_cache()


class SessionPool:
    """A fixed number of sessions shared by all threads talking to one server. Sessions are handed out LIFO, so the
    most recently used connections, which are most likely still open and authenticated, are reused first.
    """
    # Rate-limits log messages about session starvation, in seconds
    STARVATION_LOG_INTERVAL = 60

    def __init__(self, factory, size, server=None):
        self._factory = factory
        self._size = size
        self._server = server
        self._lock = Lock()
        self._queue = self._fill()

    def _fill(self):
        queue = LifoQueue(maxsize=self._size)
        for _ in range(self._size):
            queue.put(self._factory(), block=False)
        return queue

    @property
    def size(self):
        return self._size

    def qsize(self):
        return self._queue.qsize()

    def get(self):
        while True:
            try:
                log.debug('Server %s: Waiting for session', self._server)
                session = self._queue.get(timeout=self.STARVATION_LOG_INTERVAL)
                log.debug('Server %s: Got session %s', self._server, session.session_id)
                return session
            except Empty:
                # Normal when many threads share few sessions
                log.debug('Server %s: No sessions available for %s seconds', self._server,
                          self.STARVATION_LOG_INTERVAL)

    def put(self, session):
        log.debug('Server %s: Releasing session %s', self._server, session.session_id)
        try:
            self._queue.put(session, block=False)
        except Full:
            log.debug('Server %s: Session pool was already full %s', self._server, session.session_id)

    def shrink(self):
        """Removes one session for good. At least one session is always kept."""
        if self._size <= 1:
            raise SessionPoolMinSizeReached('Session pool size cannot be decreased further')
        with self._lock:
            if self._size <= 1:
                log.debug('Session pool size was decreased in another thread')
                return
            log.warning('Lowering session pool size from %s to %s', self._size, self._size - 1)
            self.get().close()
            self._size -= 1

    def close(self):
        log.debug('Server %s: Closing sessions', self._server)
        while True:
            try:
                self._queue.get(block=False).close()
            except Empty:
                break

    def reset(self):
        """Closes all idle sessions and creates new ones, e.g. after the credentials changed"""
        with self._lock:
            self.close()
            self._queue = self._fill()


class BaseProtocol:
    """Session pooling and authentication, shared by the EWS and the autodiscover protocols"""

    # The default number of sessions (== TCP connections) opened to the endpoint. Exchange throttles clients that open
    # many concurrent connections. Override with Configuration(max_connections=...).
    SESSION_POOLSIZE = 4
    # NTLM authenticates a connection, not a request, so a session must never share connections with other sessions
    CONNECTIONS_PER_SESSION = 1
    # Timeout for HTTP requests, in seconds
    TIMEOUT = 120

    # Override this if you need e.g. proxy support or specific TLS versions
    HTTP_ADAPTER_CLS = requests.adapters.HTTPAdapter

    # Override this to set an app-specific User-Agent
    USERAGENT = None

    # Session ids only appear in debug messages
    _session_ids = itertools.count(1)

    def __init__(self, config):
        from .configuration import Configuration
        if not isinstance(config, Configuration):
            raise ValueError("'config' %r must be a Configuration instance" % config)
        if not config.service_endpoint:
            raise AttributeError("'config.service_endpoint' must be set")
        self.config = config
        self._api_version_hint = None
        if self.config.auth_type is None:
            self.config.auth_type = self.get_auth_type()
        self.session_pool = self._create_session_pool()

    @property
    def service_endpoint(self):
        return self.config.service_endpoint

    @property
    def auth_type(self):
        return self.config.auth_type

    @property
    def credentials(self):
        return self.config.credentials

    @credentials.setter
    def credentials(self, value):
        # Idle sessions hold the old credentials
        self.config._credentials = value
        self.session_pool.reset()

    @property
    def retry_policy(self):
        return self.config.retry_policy

    @property
    def server(self):
        return self.config.server

    @property
    def session_pool_size(self):
        return self.session_pool.size

    def _create_session_pool(self):
        return SessionPool(
            factory=self.create_session,
            size=self.config.max_connections or self.SESSION_POOLSIZE,
            server=self.server,
        )

    def __getstate__(self):
        # Sessions cannot be pickled. The pool is recreated on unpickling.
        state = self.__dict__.copy()
        del state['session_pool']
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self.session_pool = self._create_session_pool()

    def __del__(self):
        try:
            self.close()
        except Exception:  # nosec
            # __del__ should never fail
            pass

    def close(self):
        self.session_pool.close()

    def get_auth_type(self):
        """Asks the endpoint which auth types it offers. Remembers the first API version the server accepted."""
        auth_type, self._api_version_hint = get_service_authtype(
            service_endpoint=self.service_endpoint, retry_policy=self.retry_policy, api_versions=API_VERSIONS,
        )
        return auth_type

    def get_session(self):
        return self.session_pool.get()

    def release_session(self, session):
        self.session_pool.put(session)

    def decrease_poolsize(self):
        """Called when the server complains that we have too many connections open"""
        self.session_pool.shrink()

    def retire_session(self, session):
        # Close the session and put a fresh one in the pool
        log.debug('Server %s: Retiring session %s', self.server, session.session_id)
        session.close()
        self.release_session(self.create_session())

    def renew_session(self, session):
        # Close the session and hand a fresh one to the caller
        log.debug('Server %s: Renewing session %s', self.server, session.session_id)
        session.close()
        return self.create_session()

    def refresh_credentials(self, session):
        """Called when the server rejected our credentials, e.g. because an OAuth token expired"""
        with self.credentials.lock:
            if hash(self.credentials) == session.credentials_hash:
                # No other thread has refreshed the credentials since this session was created
                self.credentials.refresh(session)
        return self.renew_session(session)

    def create_session(self):
        if self.auth_type is None:
            raise ValueError('Cannot create session without knowing the auth type')
        if self.credentials is None:
            if self.auth_type not in ANONYMOUS_AUTH_TYPES:
                raise ValueError('Auth type %r requires credentials' % self.auth_type)
            session = self.raw_session()
            session.auth = get_auth_instance(auth_type=self.auth_type)
            session.credentials_hash = None
        else:
            with self.credentials.lock:
                session = self._create_authenticated_session()
                # Lets refresh_credentials() find out if another thread already refreshed the credentials
                session.credentials_hash = hash(self.credentials)
        session.session_id = next(self._session_ids)
        session.protocol = self
        log.debug('Server %s: Created session %s', self.server, session.session_id)
        return session

    def _create_authenticated_session(self):
        if isinstance(self.credentials, OAuth2Credentials):
            return self.create_oauth2_session()
        session = self.raw_session()
        if isinstance(self.credentials, BearerTokenCredentials):
            self.credentials.refresh(session)
            return session
        username = self.credentials.username
        if self.auth_type == NTLM and self.credentials.type == self.credentials.EMAIL:
            # NTLM wants an empty domain when the username is an email address
            username = '\\' + username
        session.auth = get_auth_instance(auth_type=self.auth_type, username=username,
                                         password=self.credentials.password)
        return session

    def create_oauth2_session(self):
        if self.auth_type != OAUTH2:
            raise ValueError('Auth type must be %r for credentials type OAuth2Credentials' % OAUTH2)
        credentials = self.credentials
        scope = [OAUTH2_SCOPE]
        session_params = {}
        token_params = {}
        has_token = False
        if isinstance(credentials, OAuth2AuthorizationCodeCredentials):
            # Ask for a refresh token as well
            scope.append('offline_access')
            token_url = OAUTH2_TOKEN_URL % OAUTH2_COMMON_TENANT
            has_token = credentials.access_token is not None
            if has_token:
                session_params['token'] = credentials.access_token
            elif credentials.authorization_code is not None:
                # An authorization code can only be redeemed once
                token_params['code'] = credentials.authorization_code
                credentials.authorization_code = None
            if credentials.client_id is not None and credentials.client_secret is not None:
                # With a client secret, tokens are refreshed automatically. Otherwise TokenExpiredError reaches the
                # caller.
                session_params.update(
                    auto_refresh_kwargs=dict(client_id=credentials.client_id, client_secret=credentials.client_secret),
                    auto_refresh_url=token_url,
                    token_updater=credentials.on_token_auto_refreshed,
                )
            client = WebApplicationClient(credentials.client_id)
        else:
            token_url = OAUTH2_TOKEN_URL % credentials.tenant_id
            client = BackendApplicationClient(client_id=credentials.client_id)

        session = self.raw_session(client, session_params)
        if not has_token:
            token = session.fetch_token(token_url=token_url, client_id=credentials.client_id,
                                        client_secret=credentials.client_secret, scope=scope, **token_params)
            credentials.on_token_auto_refreshed(token)
        session.auth = get_auth_instance(auth_type=OAUTH2, client=client)
        return session

    @classmethod
    def get_adapter(cls):
        # No retries. All requests go through our own retry handler in post_ratelimited()
        return cls.HTTP_ADAPTER_CLS(
            pool_block=True,
            pool_connections=cls.CONNECTIONS_PER_SESSION,
            pool_maxsize=cls.CONNECTIONS_PER_SESSION,
            max_retries=0,
        )

    @classmethod
    def get_useragent(cls):
        if not cls.USERAGENT:
            from . import __version__
            cls.USERAGENT = 'exchangews/%s (%s)' % (__version__, requests.utils.default_user_agent())
        return cls.USERAGENT

    @classmethod
    def raw_session(cls, oauth2_client=None, oauth2_session_params=None):
        if oauth2_client:
            session = OAuth2Session(client=oauth2_client, **(oauth2_session_params or {}))
        else:
            session = requests.sessions.Session()
        session.headers.update(DEFAULT_HEADERS)
        session.headers['User-Agent'] = cls.get_useragent()
        session.mount('http://', adapter=cls.get_adapter())
        session.mount('https://', adapter=cls.get_adapter())
        return session

    def __repr__(self):
        return self.__class__.__name__ + repr((self.service_endpoint, self.credentials, self.auth_type))


class CachingProtocol(type):
    """Returns the same Protocol instance for the same (endpoint, credentials) pair, so that accounts on one server
    share a session pool. A TransportError raised while creating a protocol is cached and raised again for the same
    key.
    """
    _protocol_cache = {}
    _protocol_cache_lock = Lock()

    def __call__(cls, *args, **kwargs):
        # 'auth_type' is not part of the key. We trust the caller to supply the correct one.
        key = kwargs['config'].service_endpoint, kwargs['config'].credentials
        protocol = cls._protocol_cache.get(key)
        if protocol is None:
            with cls._protocol_cache_lock:
                protocol = cls._protocol_cache.get(key)
                if protocol is None:
                    protocol = cls._create(key, *args, **kwargs)
        if isinstance(protocol, Exception):
            raise protocol
        return protocol

    def _create(cls, key, *args, **kwargs):
        log.debug("Protocol cache miss. Adding key '%s'", str(key))
        try:
            protocol = super().__call__(*args, **kwargs)
        except TransportError as e:
            # E.g. autodiscover returned a bogus EWS endpoint
            log.warning('Failed to create cached protocol with key %s: %s', key, e)
            protocol = e
        cls._protocol_cache[key] = protocol
        return protocol

    @classmethod
    def clear_cache(mcs):
        for key, protocol in mcs._protocol_cache.items():
            if isinstance(protocol, Exception):
                continue
            log.debug("Service endpoint '%s': Closing sessions", key[0])
            protocol.close()
        mcs._protocol_cache.clear()


class Protocol(BaseProtocol, metaclass=CachingProtocol):
    """The protocol for the EWS endpoint, e.g. https://mail.example.com/EWS/Exchange.asmx"""

    def __init__(self, *args, **kwargs):
        self._version_lock = Lock()
        super().__init__(*args, **kwargs)

    @property
    def version(self):
        """The configured version, or a placeholder with only an API version. Services replace the placeholder with
        the real version as soon as the server reports it in a SOAP header.
        """
        if self.config.version is None:
            with self._version_lock:
                if self.config.version is None:
                    api_version = self._api_version_hint or DEFAULT_API_VERSION
                    log.debug('Server %s: No version configured. Assuming %s', self.server, api_version)
                    self.config.version = Version(build=None, api_version=api_version)
        return self.config.version

    def __getstate__(self):
        state = super().__getstate__()
        del state['_version_lock']
        return state

    def __setstate__(self, state):
        super().__setstate__(state)
        self._version_lock = Lock()

    def __str__(self):
        if self.config.version:
            fullname, api_version, build = self.version.fullname, self.version.api_version, self.version.build
        else:
            fullname, api_version, build = '[unknown]', '[unknown]', '[unknown]'
        return '''\
EWS url: %s
Product name: %s
EWS API version: %s
Build number: %s
EWS auth: %s''' % (self.service_endpoint, fullname, api_version, build, self.auth_type)


class NoVerifyHTTPAdapter(requests.adapters.HTTPAdapter):
    """An HTTP adapter that ignores TLS validation errors. Use at own risk."""
    def cert_verify(self, conn, url, verify, cert):
        super().cert_verify(conn=conn, url=url, verify=False, cert=cert)


class RetryPolicy:
    """Decides what to do when the server fails or asks us to slow down"""
    @property
    def fail_fast(self):
        raise NotImplementedError()

    @property
    def back_off_until(self):
        raise NotImplementedError()

    @back_off_until.setter
    def back_off_until(self, value):
        raise NotImplementedError()

    def back_off(self, seconds):
        raise NotImplementedError()


class FailFast(RetryPolicy):
    """Fail immediately on server errors"""
    @property
    def fail_fast(self):
        return True

    @property
    def back_off_until(self):
        return None

    def back_off(self, seconds):
        pass


class FaultTolerance(RetryPolicy):
    """Back off exponentially when requests start failing, and wait up to 'max_wait' seconds before giving up"""
    # Used when the server asks us to back off without saying for how long
    DEFAULT_BACK_OFF = 60

    def __init__(self, max_wait=3600):
        self.max_wait = max_wait
        self._back_off_until = None
        self._back_off_lock = Lock()

    def __getstate__(self):
        # Locks cannot be pickled
        state = self.__dict__.copy()
        del state['_back_off_lock']
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._back_off_lock = Lock()

    @property
    def fail_fast(self):
        return False

    @property
    def back_off_until(self):
        """The back off deadline as a datetime, or None. An expired deadline is reset."""
        with self._back_off_lock:
            if self._back_off_until is not None and self._back_off_until < datetime.datetime.now():
                self._back_off_until = None
            return self._back_off_until

    @back_off_until.setter
    def back_off_until(self, value):
        with self._back_off_lock:
            self._back_off_until = value

    def back_off(self, seconds):
        if seconds is None:
            seconds = self.DEFAULT_BACK_OFF
        self.back_off_until = datetime.datetime.now() + datetime.timedelta(seconds=seconds)
