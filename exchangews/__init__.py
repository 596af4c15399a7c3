from .account import Account
from .autodiscover import discover
from .configuration import Configuration
from .credentials import DELEGATE, IMPERSONATION, Credentials, BearerTokenCredentials, Identity, OAuth2Credentials, \
    OAuth2AuthorizationCodeCredentials
from .ewsdatetime import EWSDate, EWSDateTime, EWSTimeZone, UTC, UTC_NOW
from .folders import Folder, CalendarFolder, ContactsFolder, TasksFolder
from .insights import Person, PersonInsight, PersonInsightCollection
from .items import Item, Appointment, Contact, EmailMessage, Task
from .notifications import StreamingSubscription, StreamingSubscriptionConnection
from .properties import Body, HTMLBody, ItemId, FolderId, Mailbox, Attendee
from .protocol import FaultTolerance, FailFast, BaseProtocol, NoVerifyHTTPAdapter
from .search_filters import SearchFilter, SearchFilterCollection, Exists, ContainsSubstring, ExcludesBitmask, Not, \
    IsEqualTo, IsNotEqualTo, IsGreaterThan, IsGreaterThanOrEqualTo, IsLessThan, IsLessThanOrEqualTo, AND, OR
from .service_object import PropertySet
from .services import FindItem, FindFolder, GetPeopleInsights, SHALLOW, DEEP, SOFT_DELETED, ASSOCIATED
from .transport import BASIC, DIGEST, NTLM, GSSAPI, SSPI, OAUTH2, CBA
from .version import Build, Version

__version__ = '1.0.0'

__all__ = [
    '__version__',
    'Account',
    'discover',
    'Configuration',
    'DELEGATE', 'IMPERSONATION', 'Credentials', 'BearerTokenCredentials', 'Identity',
    'OAuth2AuthorizationCodeCredentials', 'OAuth2Credentials',
    'EWSDate', 'EWSDateTime', 'EWSTimeZone', 'UTC', 'UTC_NOW',
    'Folder', 'CalendarFolder', 'ContactsFolder', 'TasksFolder',
    'Person', 'PersonInsight', 'PersonInsightCollection',
    'Item', 'Appointment', 'Contact', 'EmailMessage', 'Task',
    'StreamingSubscription', 'StreamingSubscriptionConnection',
    'Body', 'HTMLBody', 'ItemId', 'FolderId', 'Mailbox', 'Attendee',
    'FailFast', 'FaultTolerance', 'BaseProtocol', 'NoVerifyHTTPAdapter',
    'SearchFilter', 'SearchFilterCollection', 'Exists', 'ContainsSubstring', 'ExcludesBitmask', 'Not', 'IsEqualTo',
    'IsNotEqualTo', 'IsGreaterThan', 'IsGreaterThanOrEqualTo', 'IsLessThan', 'IsLessThanOrEqualTo', 'AND', 'OR',
    'PropertySet',
    'FindItem', 'FindFolder', 'GetPeopleInsights', 'SHALLOW', 'DEEP', 'SOFT_DELETED', 'ASSOCIATED',
    'BASIC', 'DIGEST', 'NTLM', 'GSSAPI', 'SSPI', 'OAUTH2', 'CBA',
    'Build', 'Version',
]


def close_connections():
    from .protocol import close_connections as close_protocol_connections
    close_protocol_connections()
