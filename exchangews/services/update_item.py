from collections import OrderedDict
import logging

from ..util import MNS
from .common import EWSAccountService, write_folder_ids

log = logging.getLogger(__name__)


class UpdateItem(EWSAccountService):
    """Sends the change log of each item. Only properties that were added, modified or deleted since the item was
    loaded are part of the request.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/updateitem
    """
    SERVICE_NAME = 'UpdateItem'
    element_container_name = '{%s}Items' % MNS

    def call(self, items, conflict_resolution, message_disposition, send_meeting_invitations_or_cancellations,
             saved_item_folder=None):
        from ..items import CONFLICT_RESOLUTION_CHOICES, MESSAGE_DISPOSITION_CHOICES, \
            SEND_MEETING_INVITATIONS_AND_CANCELLATIONS_CHOICES
        if conflict_resolution not in CONFLICT_RESOLUTION_CHOICES:
            raise ValueError("'conflict_resolution' %s must be one of %s" % (
                conflict_resolution, CONFLICT_RESOLUTION_CHOICES
            ))
        if message_disposition is not None and message_disposition not in MESSAGE_DISPOSITION_CHOICES:
            raise ValueError("'message_disposition' %s must be one of %s" % (
                message_disposition, MESSAGE_DISPOSITION_CHOICES
            ))
        if send_meeting_invitations_or_cancellations is not None and send_meeting_invitations_or_cancellations \
                not in SEND_MEETING_INVITATIONS_AND_CANCELLATIONS_CHOICES:
            raise ValueError("'send_meeting_invitations_or_cancellations' %s must be one of %s" % (
                send_meeting_invitations_or_cancellations, SEND_MEETING_INVITATIONS_AND_CANCELLATIONS_CHOICES
            ))
        return self._chunked_get_elements(
            self.get_payload,
            items=items,
            conflict_resolution=conflict_resolution,
            message_disposition=message_disposition,
            send_meeting_invitations_or_cancellations=send_meeting_invitations_or_cancellations,
            saved_item_folder=saved_item_folder,
        )

    def get_payload(self, items, conflict_resolution, message_disposition, send_meeting_invitations_or_cancellations,
                    saved_item_folder):
        writer = self._writer()
        attrs = OrderedDict([('ConflictResolution', conflict_resolution)])
        if message_disposition is not None:
            attrs['MessageDisposition'] = message_disposition
        if send_meeting_invitations_or_cancellations is not None:
            attrs['SendMeetingInvitationsOrCancellations'] = send_meeting_invitations_or_cancellations
        writer.start('m:%s' % self.SERVICE_NAME, attrs=attrs)
        if saved_item_folder is not None:
            write_folder_ids(writer, [saved_item_folder], tag='m:SavedItemFolderId')
        writer.start('m:ItemChanges')
        for item in items:
            log.debug('Updating item %s values %s', item.get_id(),
                      [f.name for f in item.property_bag.modified_properties])
            item.write_to_xml_for_update(writer)
        writer.end()
        writer.end()
        return writer.root
