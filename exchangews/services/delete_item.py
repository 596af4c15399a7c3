from collections import OrderedDict

from .common import EWSAccountService, write_item_ids


class DeleteItem(EWSAccountService):
    """
    Takes a list of items or item ids. Returns True or an exception instance for each item, in the same order as the
    input list.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/deleteitem
    """
    SERVICE_NAME = 'DeleteItem'
    element_container_name = None  # DeleteItem doesn't return a response object, just status in XML attrs

    def call(self, items, delete_type, send_meeting_cancellations=None, affected_task_occurrences=None):
        from ..items import DELETE_TYPE_CHOICES, SEND_MEETING_CANCELLATIONS_CHOICES, AFFECTED_TASK_OCCURRENCES_CHOICES
        if delete_type not in DELETE_TYPE_CHOICES:
            raise ValueError("'delete_type' %s must be one of %s" % (
                delete_type, DELETE_TYPE_CHOICES
            ))
        if send_meeting_cancellations is not None and \
                send_meeting_cancellations not in SEND_MEETING_CANCELLATIONS_CHOICES:
            raise ValueError("'send_meeting_cancellations' %s must be one of %s" % (
                send_meeting_cancellations, SEND_MEETING_CANCELLATIONS_CHOICES
            ))
        if affected_task_occurrences is not None and \
                affected_task_occurrences not in AFFECTED_TASK_OCCURRENCES_CHOICES:
            raise ValueError("'affected_task_occurrences' %s must be one of %s" % (
                affected_task_occurrences, AFFECTED_TASK_OCCURRENCES_CHOICES
            ))
        return self._chunked_get_elements(
            self.get_payload,
            items=items,
            delete_type=delete_type,
            send_meeting_cancellations=send_meeting_cancellations,
            affected_task_occurrences=affected_task_occurrences,
        )

    def get_payload(self, items, delete_type, send_meeting_cancellations, affected_task_occurrences):
        writer = self._writer()
        attrs = OrderedDict([('DeleteType', delete_type)])
        if send_meeting_cancellations is not None:
            attrs['SendMeetingCancellations'] = send_meeting_cancellations
        if affected_task_occurrences is not None:
            attrs['AffectedTaskOccurrences'] = affected_task_occurrences
        writer.start('m:%s' % self.SERVICE_NAME, attrs=attrs)
        write_item_ids(writer, items)
        writer.end()
        return writer.root
