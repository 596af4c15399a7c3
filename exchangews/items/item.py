import logging

from ..errors import ServiceLocalException
from ..fields import BooleanField, IntegerField, TextField, TextListField, ChoiceField, BodyField, DateTimeField, \
    EWSElementField, ComplexCollectionField, EffectiveRightsField, IdField, CAN_SET, CAN_UPDATE, CAN_DELETE, \
    MUST_BE_EXPLICITLY_LOADED, IMPORTANCE_CHOICES, SENSITIVITY_CHOICES
from ..properties import ItemId, FolderId, Body, Flag, InternetMessageHeader
from ..service_object import ServiceObject, PropertySet
from ..version import EXCHANGE_2010, EXCHANGE_2013
from .base import register_item_class, item_class_for, SAVE_ONLY, AUTO_RESOLVE, MOVE_TO_DELETED_ITEMS

log = logging.getLogger(__name__)


@register_item_class
class Item(ServiceObject):
    """The generic item. Also used for item types that have no dedicated class.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/item
    """
    ELEMENT_NAME = 'Item'
    ID_FIELD = IdField('id', field_uri='item:ItemId', value_cls=ItemId)

    CHANGE_ELEMENT_NAME = 'ItemChange'
    SET_FIELD_ELEMENT_NAME = 'SetItemField'
    DELETE_FIELD_ELEMENT_NAME = 'DeleteItemField'
    APPEND_FIELD_ELEMENT_NAME = 'AppendToItemField'

    # The MessageDisposition sent with create and update requests. None means the attribute is left out.
    MESSAGE_DISPOSITION = SAVE_ONLY

    FIELDS = (
        ID_FIELD,
        EWSElementField('parent_folder_id', field_uri='item:ParentFolderId', value_cls=FolderId, is_read_only=True),
        TextField('item_class', field_uri='item:ItemClass'),
        TextField('subject', field_uri='item:Subject'),
        ChoiceField('sensitivity', field_uri='item:Sensitivity', choices=SENSITIVITY_CHOICES),
        BodyField('body', field_uri='item:Body', flags=CAN_SET | CAN_UPDATE | CAN_DELETE),
        DateTimeField('datetime_received', field_uri='item:DateTimeReceived', is_read_only=True),
        IntegerField('size', field_uri='item:Size', is_read_only=True),  # Item size in bytes
        TextListField('categories', field_uri='item:Categories'),
        ChoiceField('importance', field_uri='item:Importance', choices=IMPORTANCE_CHOICES),
        TextField('in_reply_to', field_uri='item:InReplyTo'),
        BooleanField('is_submitted', field_uri='item:IsSubmitted', is_read_only=True),
        BooleanField('is_draft', field_uri='item:IsDraft', is_read_only=True),
        BooleanField('is_from_me', field_uri='item:IsFromMe', is_read_only=True),
        BooleanField('is_resend', field_uri='item:IsResend', is_read_only=True),
        BooleanField('is_unmodified', field_uri='item:IsUnmodified', is_read_only=True),
        ComplexCollectionField('headers', field_uri='item:InternetMessageHeaders', item_cls=InternetMessageHeader,
                               is_read_only=True),
        DateTimeField('datetime_sent', field_uri='item:DateTimeSent', is_read_only=True),
        DateTimeField('datetime_created', field_uri='item:DateTimeCreated', is_read_only=True),
        DateTimeField('reminder_due_by', field_uri='item:ReminderDueBy'),
        BooleanField('reminder_is_set', field_uri='item:ReminderIsSet'),
        IntegerField('reminder_minutes_before_start', field_uri='item:ReminderMinutesBeforeStart', min=0),
        TextField('display_cc', field_uri='item:DisplayCc', is_read_only=True),
        TextField('display_to', field_uri='item:DisplayTo', is_read_only=True),
        BooleanField('has_attachments', field_uri='item:HasAttachments', is_read_only=True),
        TextField('culture', field_uri='item:Culture'),
        EffectiveRightsField('effective_rights', field_uri='item:EffectiveRights'),
        TextField('last_modified_name', field_uri='item:LastModifiedName', is_read_only=True),
        DateTimeField('last_modified_time', field_uri='item:LastModifiedTime', is_read_only=True),
        BooleanField('is_associated', field_uri='item:IsAssociated', is_read_only=True, supported_from=EXCHANGE_2010),
        EWSElementField('unique_body', field_uri='item:UniqueBody', value_cls=Body, is_read_only=True,
                        flags=MUST_BE_EXPLICITLY_LOADED, supported_from=EXCHANGE_2010),
        EWSElementField('flag', field_uri='item:Flag', value_cls=Flag, supported_from=EXCHANGE_2013),
    )

    @classmethod
    def bind(cls, account, item_id, property_set=None):
        """Fetches an item from the server. The returned object is of the class matching the item type, which must
        be 'cls' or a subclass of it.
        """
        from ..services import GetItem
        from ..services.common import single_result
        if property_set is None:
            property_set = PropertySet.FIRST_CLASS_PROPERTIES
        reader = single_result(GetItem(account=account).call(items=[item_id], property_set=property_set))
        item_cls = item_class_for(reader.local_name)
        if not issubclass(item_cls, cls):
            raise ServiceLocalException('The item type returned by the service (%s) is not compatible with %s' % (
                item_cls.__name__, cls.__name__))
        return item_cls.from_xml(reader, account=account, requested_property_set=property_set)

    def save(self, folder=None):
        """Creates the item on the server, in 'folder' or in the default folder for the item type"""
        return super().save(folder, self.MESSAGE_DISPOSITION, None)

    def update(self, conflict_resolution=AUTO_RESOLVE):
        return super().update(conflict_resolution, self.MESSAGE_DISPOSITION, None)

    def delete(self, delete_type=MOVE_TO_DELETED_ITEMS):
        return super().delete(delete_type, None, None)

    def _get(self, property_set):
        from ..services import GetItem
        from ..services.common import single_result
        return single_result(GetItem(account=self.account).call(items=[self.get_id()], property_set=property_set))

    def _create(self, folder, message_disposition, send_meeting_invitations):
        from ..services import CreateItem
        from ..services.common import single_result
        # Items that are sent and not saved are not returned in the response
        return single_result(CreateItem(account=self.account).call(
            items=[self],
            folder=folder,
            message_disposition=message_disposition,
            send_meeting_invitations=send_meeting_invitations,
        ), allow_empty=True)

    def _update(self, conflict_resolution, message_disposition, send_meeting_invitations_or_cancellations):
        from ..services import UpdateItem
        from ..services.common import single_result
        return single_result(UpdateItem(account=self.account).call(
            items=[self],
            conflict_resolution=conflict_resolution,
            message_disposition=message_disposition,
            send_meeting_invitations_or_cancellations=send_meeting_invitations_or_cancellations,
        ), allow_empty=True)

    def _delete(self, delete_type, send_meeting_cancellations, affected_task_occurrences):
        from ..services import DeleteItem
        from ..services.common import single_result
        single_result(DeleteItem(account=self.account).call(
            items=[self.get_id()],
            delete_type=delete_type,
            send_meeting_cancellations=send_meeting_cancellations,
            affected_task_occurrences=affected_task_occurrences,
        ))

    def _check_type(self, reader):
        # A generic Item may hold any item type
        if self.__class__ is Item:
            return
        super()._check_type(reader)
