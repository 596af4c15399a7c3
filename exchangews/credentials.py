"""
Credentials and access types. A login may act on a mailbox it does not own in one of two ways: impersonation, which
is used by service accounts, or delegate access, which the mailbox owner grants by hand. See
http://blogs.msdn.com/b/exchangedev/archive/2009/06/15/exchange-impersonation-vs-delegate-access.aspx

Every credentials class implements the same narrow hooks: refresh(session) is called when the server rejects the
credentials mid-session, and sign(envelope) is called with the serialized SOAP envelope right before it is posted.
"""
import abc
import logging
from threading import RLock

log = logging.getLogger(__name__)

IMPERSONATION = 'impersonation'
DELEGATE = 'delegate'
ACCESS_TYPES = (IMPERSONATION, DELEGATE)


class Identity:
    """The ways to identify the user that an impersonating request acts as. The first non-empty value in the order
    sid, upn, smtp_address, primary_smtp_address is sent in the ExchangeImpersonation header.
    """
    def __init__(self, primary_smtp_address=None, smtp_address=None, upn=None, sid=None):
        self.primary_smtp_address = primary_smtp_address
        self.smtp_address = smtp_address
        self.upn = upn
        self.sid = sid

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return NotImplemented
        return vars(self) == vars(other)

    def __hash__(self):
        return hash((self.primary_smtp_address, self.smtp_address, self.upn, self.sid))

    def __repr__(self):
        return self.__class__.__name__ + repr((self.primary_smtp_address, self.smtp_address, self.upn, self.sid))


class BaseCredentials(metaclass=abc.ABCMeta):
    """Base for credential storage. Holds a lock that protects the object while credentials are being refreshed.

    'signer' is an optional callable that takes the serialized SOAP envelope as bytes and returns the bytes to post,
    e.g. to add a WS-Security header.
    """
    # Attributes that do not identify the login, and are left out of equality and hashing
    VOLATILE_ATTRS = ('_lock', 'signer')

    def __init__(self, signer=None):
        self._lock = RLock()
        self.signer = signer

    @property
    def lock(self):
        return self._lock

    @abc.abstractmethod
    def refresh(self, session):
        """Obtain a new set of valid credentials for 'session'"""
        raise NotImplementedError('%s does not support refreshing' % self.__class__.__name__)

    def sign(self, envelope):
        if self.signer is None:
            return envelope
        return self.signer(envelope)

    def _identifying_attrs(self):
        return [k for k in self.__dict__ if k not in self.VOLATILE_ATTRS]

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return NotImplemented
        return all(getattr(self, k) == getattr(other, k, None) for k in self._identifying_attrs())

    def __hash__(self):
        return hash(tuple(getattr(self, k) for k in self._identifying_attrs()))

    def __getstate__(self):
        # Locks cannot be pickled
        state = self.__dict__.copy()
        del state['_lock']
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = RLock()


class Credentials(BaseCredentials):
    """
    A username and a clear-text password. The username is one of:
    * the primary SMTP address
    * WINDOMAIN\\username
    * a User Principal Name (UPN)
    """
    EMAIL = 'email'
    DOMAIN = 'domain'
    UPN = 'upn'

    def __init__(self, username, password, signer=None):
        super().__init__(signer=signer)
        if username.count('@') == 1:
            self.type = self.EMAIL
        elif username.count('\\') == 1:
            self.type = self.DOMAIN
        else:
            self.type = self.UPN
        self.username = username
        self.password = password

    def refresh(self, session):
        # A password cannot be refreshed. The session is simply recreated.
        pass

    def __repr__(self):
        return self.__class__.__name__ + repr((self.username, '********'))

    def __str__(self):
        return self.username


class BearerTokenCredentials(BaseCredentials):
    """An access token that was obtained outside of this package. The token is sent in an 'Authorization: Bearer'
    header. Set 'token' again when the caller has refreshed it.
    """
    VOLATILE_ATTRS = BaseCredentials.VOLATILE_ATTRS + ('token',)

    def __init__(self, token, signer=None):
        super().__init__(signer=signer)
        self.token = token

    def refresh(self, session):
        session.headers['Authorization'] = 'Bearer %s' % self.token

    def __repr__(self):
        return self.__class__.__name__ + '(********)'

    def __str__(self):
        return '[bearer token]'


class OAuth2Credentials(BaseCredentials):
    """
    OAuth 2.0 client credentials grant, for applications that access mailboxes in a single tenant. Also the base for
    the other OAuth 2.0 grant types. Tokens are fetched and refreshed through requests_oauthlib.

    'identity' is informational only and identifies the account that these credentials are tied to.
    """
    VOLATILE_ATTRS = BaseCredentials.VOLATILE_ATTRS + ('identity', 'access_token')

    def __init__(self, client_id, client_secret, tenant_id, identity=None, signer=None):
        super().__init__(signer=signer)
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id
        self.identity = identity
        # A dict, or an oauthlib.oauth2.OAuth2Token which is also a dict
        self.access_token = None

    def refresh(self, session):
        # A new session fetches a new token, so there is nothing to do here
        pass

    def on_token_auto_refreshed(self, access_token):
        """Called by requests_oauthlib when it has refreshed the token. Subclasses that cache tokens may override this,
        but must call super().
        """
        if not isinstance(access_token, dict):
            raise ValueError("'access_token' must be an OAuth2Token")
        with self.lock:
            self.access_token = access_token

    def sig(self):
        # Like hash(self), but includes the current token. Used to detect that another thread refreshed the token.
        token = self.access_token['access_token'] if self.access_token else None
        return hash((hash(self), token))

    def __repr__(self):
        return self.__class__.__name__ + repr((self.client_id, '********'))

    def __str__(self):
        return self.client_id


class OAuth2AuthorizationCodeCredentials(OAuth2Credentials):
    """
    OAuth 2.0 authorization code grant, for applications that access mailboxes in many tenants. Supply either an
    authorization code together with the client id and secret, or an existing access token. A token without a client
    id and secret is used until it expires.
    """

    def __init__(self, client_id=None, client_secret=None, authorization_code=None, access_token=None, signer=None):
        super().__init__(client_id, client_secret, tenant_id=None, signer=signer)
        self.authorization_code = authorization_code
        if access_token is not None and not isinstance(access_token, dict):
            raise ValueError("'access_token' must be an OAuth2Token")
        self.access_token = access_token

    def __repr__(self):
        return self.__class__.__name__ + repr(
            (self.client_id, '[client_secret]', '[authorization_code]', '[access_token]')
        )

    def __str__(self):
        if self.access_token is not None:
            credential = '[access_token]'
        elif self.authorization_code is not None:
            credential = '[authorization_code]'
        else:
            credential = None
        return ' '.join(filter(None, [self.client_id, credential])) or '[underspecified credentials]'
