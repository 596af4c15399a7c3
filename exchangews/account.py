from locale import getlocale
from logging import getLogger

from .autodiscover import discover
from .credentials import DELEGATE, IMPERSONATION, ACCESS_TYPES, Identity
from .errors import UnknownTimeZone
from .ewsdatetime import EWSTimeZone, UTC
from .events import EVENT_TYPES
from .protocol import Protocol

log = getLogger(__name__)


def _host_locale():
    try:
        return getlocale()[0] or None
    except ValueError as e:
        # Unparseable system locale
        log.warning('Failed to get locale (%s)', e)
        return None


def _host_timezone():
    try:
        return EWSTimeZone.localzone()
    except (ValueError, UnknownTimeZone) as e:
        log.warning('%s. Fallback to UTC', e.args[0])
        return UTC


class Account:
    """A mailbox on the server, identified by its primary SMTP address.

    The account either looks up its EWS endpoint with autodiscover, which needs 'credentials', or connects to the
    endpoint in 'config'. 'access_type' is 'delegate' or 'impersonation'. It defaults to delegate access when
    personal credentials are given, and to impersonation otherwise.

    'default_timezone' is assumed for datetime values the server returns without timezone information. It defaults
    to the timezone of the host, or UTC when that can't be mapped to a Windows timezone.
    """
    def __init__(self, primary_smtp_address, fullname=None, access_type=None, autodiscover=False, credentials=None,
                 config=None, locale=None, default_timezone=None):
        if '@' not in primary_smtp_address:
            raise ValueError("primary_smtp_address '%s' is not an email address" % primary_smtp_address)
        self.primary_smtp_address = primary_smtp_address
        self.fullname = fullname
        self.locale = locale or _host_locale()
        if self.locale is not None and not isinstance(self.locale, str):
            raise ValueError("Expected 'locale' to be a string, got %s" % self.locale)
        self.access_type = access_type or (DELEGATE if credentials else IMPERSONATION)
        if self.access_type not in ACCESS_TYPES:
            raise ValueError("'access_type' %s must be one of %s" % (self.access_type, ACCESS_TYPES))
        self.protocol = self._connect(autodiscover=autodiscover, credentials=credentials, config=config)
        self.default_timezone = default_timezone or _host_timezone()
        if not isinstance(self.default_timezone, EWSTimeZone):
            raise ValueError("Expected 'default_timezone' to be an EWSTimeZone, got %s" % self.default_timezone)
        # Sent in the ExchangeImpersonation header
        self.identity = Identity(primary_smtp_address=self.primary_smtp_address)
        # The mailbox may live on an older backend than the one the protocol first talked to. Services update this
        # when the server reports a different version for requests on behalf of this account.
        self.version = self.protocol.version
        log.debug('Added account: %s', self)

    def _connect(self, autodiscover, credentials, config):
        if not autodiscover:
            if not config:
                raise AttributeError('non-autodiscover requires a config')
            if credentials and config.credentials is None:
                log.warning("'credentials' is ignored when 'config' is given. Set credentials on the config instead")
            return Protocol(config=config)
        if not credentials:
            raise AttributeError('autodiscover requires credentials')
        if config:
            raise AttributeError('config is ignored when autodiscover is active')
        # Autodiscover may return a different primary address than the alias we started with
        self.primary_smtp_address, protocol = discover(email=self.primary_smtp_address, credentials=credentials)
        return protocol

    @property
    def domain(self):
        return self.primary_smtp_address.split('@')[1].lower()

    def bind_item(self, item_id, property_set=None):
        """Fetches an item by id. The returned object is of the class matching the item type on the server."""
        from .items import Item
        return Item.bind(account=self, item_id=item_id, property_set=property_set)

    def bind_folder(self, folder_id, property_set=None):
        """Fetches a folder by id, or by the name of a well-known folder"""
        from .folders import Folder
        return Folder.bind(account=self, folder_id=folder_id, property_set=property_set)

    @property
    def inbox(self):
        return self.bind_folder('inbox')

    def subscribe_to_streaming_notifications(self, folders=None, event_types=EVENT_TYPES):
        """Creates a streaming subscription on 'folders', or on all folders if 'folders' is None"""
        from .notifications import StreamingSubscription
        return StreamingSubscription.subscribe(account=self, folders=folders, event_types=event_types)

    def get_people_insights(self, email_addresses):
        """Returns a Person with the insights the server has, for each of 'email_addresses'"""
        from .services import GetPeopleInsights
        people = []
        for person in GetPeopleInsights(account=self).call(email_addresses=email_addresses):
            if isinstance(person, Exception):
                raise person
            people.append(person)
        return people

    def play_on_phone(self, item_id, dial_string):
        """Asks the Unified Messaging server to call 'dial_string' and play the item. Returns a PhoneCall."""
        from .services import PlayOnPhone
        from .unified_messaging import PhoneCall
        phone_call_id = PlayOnPhone(account=self).call(item_id=item_id, dial_string=dial_string)
        phone_call = PhoneCall(account=self, phone_call_id=phone_call_id)
        phone_call.refresh()
        return phone_call

    def __str__(self):
        if self.fullname:
            return '%s (%s)' % (self.primary_smtp_address, self.fullname)
        return self.primary_smtp_address
