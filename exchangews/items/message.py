import logging

from ..fields import BooleanField, TextField, ContainedField, ComplexCollectionField
from ..properties import Mailbox
from .base import register_item_class, SEND_ONLY, SEND_AND_SAVE_COPY, AUTO_RESOLVE
from .item import Item

log = logging.getLogger(__name__)


@register_item_class
class EmailMessage(Item):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/message-ex15websvcsotherref
    """
    ELEMENT_NAME = 'Message'

    FIELDS = Item.FIELDS + (
        ContainedField('sender', field_uri='message:Sender', value_cls=Mailbox, contained_element_name='Mailbox',
                       is_read_only=True),
        ComplexCollectionField('to_recipients', field_uri='message:ToRecipients', item_cls=Mailbox),
        ComplexCollectionField('cc_recipients', field_uri='message:CcRecipients', item_cls=Mailbox),
        ComplexCollectionField('bcc_recipients', field_uri='message:BccRecipients', item_cls=Mailbox),
        BooleanField('is_read_receipt_requested', field_uri='message:IsReadReceiptRequested'),
        BooleanField('is_delivery_receipt_requested', field_uri='message:IsDeliveryReceiptRequested'),
        TextField('conversation_topic', field_uri='message:ConversationTopic', is_read_only=True),
        ContainedField('author', field_uri='message:From', value_cls=Mailbox, contained_element_name='Mailbox'),
        TextField('message_id', field_uri='message:InternetMessageId', is_read_only=True),
        BooleanField('is_read', field_uri='message:IsRead'),
        BooleanField('is_response_requested', field_uri='message:IsResponseRequested'),
        TextField('references', field_uri='message:References'),
        ComplexCollectionField('reply_to', field_uri='message:ReplyTo', item_cls=Mailbox),
        ContainedField('received_by', field_uri='message:ReceivedBy', value_cls=Mailbox,
                       contained_element_name='Mailbox', is_read_only=True),
        ContainedField('received_representing', field_uri='message:ReceivedRepresenting', value_cls=Mailbox,
                       contained_element_name='Mailbox', is_read_only=True),
    )

    def send(self, save_copy=True, copy_to_folder=None):
        """Sends the message. A new message is created and sent in one request. An existing draft is updated first
        if it has unsaved changes. A sent draft leaves the Drafts folder, so the local object is cleared.
        """
        from ..services import SendItem
        from ..services.common import single_result
        self._require_account()
        if copy_to_folder is not None and not save_copy:
            raise AttributeError("'save_copy' must be True when 'copy_to_folder' is set")
        message_disposition = SEND_AND_SAVE_COPY if save_copy else SEND_ONLY
        if self.is_new:
            self.validate()
            res = self._create(copy_to_folder, message_disposition, None)
            if res is not None:
                log.debug('Unexpected item in response to a %s request', message_disposition)
            self.clear_change_log()
            return
        if self._property_bag.is_update_call_necessary():
            self.validate()
            self._update(AUTO_RESOLVE, message_disposition, None)
        else:
            single_result(SendItem(account=self.account).call(
                items=[self.get_id()],
                save_copy=save_copy,
                saved_item_folder=copy_to_folder,
            ))
        self._property_bag.clear()
