import logging

from ..util import MNS
from .common import EWSAccountService, write_folder_ids

log = logging.getLogger(__name__)


class SubscribeToStreamingNotifications(EWSAccountService):
    """Creates a streaming subscription on a set of folders, or on all folders of the mailbox. Returns the
    subscription id.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/subscribe-operation
    """
    SERVICE_NAME = 'Subscribe'
    subscription_request_elem_tag = 'm:StreamingSubscriptionRequest'

    def call(self, folders, event_types):
        from ..events import EVENT_TYPES
        event_types = list(event_types)
        if not event_types:
            raise ValueError("'event_types' must not be empty")
        if set(event_types) - set(EVENT_TYPES):
            raise ValueError("'event_types' values must consist of values in %s" % (EVENT_TYPES,))
        for elem in self._get_elements(payload=self.get_payload(folders=folders, event_types=event_types)):
            if isinstance(elem, Exception):
                raise elem
            return elem.text
        return None

    @staticmethod
    def _get_elements_in_container(container):
        return [container.find('{%s}SubscriptionId' % MNS)]

    def _get_element_container(self, message, name=None):
        # The subscription id is a direct child of the response message
        res = super()._get_element_container(message=message, name=None)
        return message if res is True else res

    def get_payload(self, folders, event_types):
        """'folders' may be None to subscribe to all folders in the mailbox"""
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        if folders is None:
            writer.start(self.subscription_request_elem_tag, attrs={'SubscribeToAllFolders': 'true'})
        else:
            writer.start(self.subscription_request_elem_tag)
            write_folder_ids(writer, folders, tag='t:FolderIds')
        writer.start('t:EventTypes')
        for event_type in event_types:
            writer.element('t:EventType', event_type)
        writer.end()
        writer.end()
        writer.end()
        return writer.root
