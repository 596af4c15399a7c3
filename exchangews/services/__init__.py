"""
Implement a selection of EWS services (operations).

Exchange is very picky about things like the order of XML elements in SOAP requests, so we need to generate XML
automatically instead of taking advantage of Python SOAP libraries and the WSDL file.

Exchange EWS operations overview:
    https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/ews-operations-in-exchange
"""

from .common import CHUNK_SIZE, SoapFaultDetails, SHALLOW, DEEP, SOFT_DELETED, ASSOCIATED
from .create_folder import CreateFolder
from .create_item import CreateItem
from .delete_folder import DeleteFolder
from .delete_item import DeleteItem
from .find_folder import FindFolder
from .find_item import FindItem
from .get_folder import GetFolder
from .get_item import GetItem
from .get_people_insights import GetPeopleInsights
from .get_streaming_events import GetStreamingEvents, StreamingEventsResponse
from .send_item import SendItem
from .subscribe import SubscribeToStreamingNotifications
from .unified_messaging import PlayOnPhone, GetPhoneCallInformation, DisconnectPhoneCall
from .unsubscribe import Unsubscribe
from .update_folder import UpdateFolder
from .update_item import UpdateItem

__all__ = [
    'CHUNK_SIZE', 'SoapFaultDetails', 'SHALLOW', 'DEEP', 'SOFT_DELETED', 'ASSOCIATED',
    'CreateFolder',
    'CreateItem',
    'DeleteFolder',
    'DeleteItem',
    'FindFolder',
    'FindItem',
    'GetFolder',
    'GetItem',
    'GetPeopleInsights',
    'GetStreamingEvents', 'StreamingEventsResponse',
    'SendItem',
    'SubscribeToStreamingNotifications',
    'PlayOnPhone', 'GetPhoneCallInformation', 'DisconnectPhoneCall',
    'Unsubscribe',
    'UpdateFolder',
    'UpdateItem',
]
