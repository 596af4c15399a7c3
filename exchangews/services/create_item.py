from collections import OrderedDict
import logging

from ..util import MNS
from .common import EWSAccountService, write_folder_ids

log = logging.getLogger(__name__)


class CreateItem(EWSAccountService):
    """
    Takes a folder and a list of new items. Returns a reader for each created item, in the same order as the input
    list. A created item only contains its new ItemId.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/createitem
    """
    SERVICE_NAME = 'CreateItem'
    element_container_name = '{%s}Items' % MNS

    def call(self, items, folder, message_disposition, send_meeting_invitations):
        from ..items import SEND_ONLY, MESSAGE_DISPOSITION_CHOICES, SEND_MEETING_INVITATIONS_CHOICES
        if message_disposition is not None and message_disposition not in MESSAGE_DISPOSITION_CHOICES:
            raise ValueError("'message_disposition' %s must be one of %s" % (
                message_disposition, MESSAGE_DISPOSITION_CHOICES
            ))
        if send_meeting_invitations is not None and send_meeting_invitations not in SEND_MEETING_INVITATIONS_CHOICES:
            raise ValueError("'send_meeting_invitations' %s must be one of %s" % (
                send_meeting_invitations, SEND_MEETING_INVITATIONS_CHOICES
            ))
        if message_disposition == SEND_ONLY and folder is not None:
            raise AttributeError("Folder must be None in send-only mode")
        return self._chunked_get_elements(
            self.get_payload,
            items=items,
            folder=folder,
            message_disposition=message_disposition,
            send_meeting_invitations=send_meeting_invitations,
        )

    def get_payload(self, items, folder, message_disposition, send_meeting_invitations):
        """
        MessageDisposition is only applicable to email messages, where it is required. SendMeetingInvitations is
        required for calendar items. Attributes that are None are left out.
        """
        writer = self._writer()
        attrs = OrderedDict()
        if message_disposition is not None:
            attrs['MessageDisposition'] = message_disposition
        if send_meeting_invitations is not None:
            attrs['SendMeetingInvitations'] = send_meeting_invitations
        writer.start('m:%s' % self.SERVICE_NAME, attrs=attrs)
        if folder is not None:
            write_folder_ids(writer, [folder], tag='m:SavedItemFolderId')
        writer.start('m:Items')
        for item in items:
            log.debug('Adding item %s', item)
            item.write_to_xml(writer)
        writer.end()
        writer.end()
        return writer.root
