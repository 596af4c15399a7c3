"""
Notification events, as delivered by streaming subscriptions. Each event element is parsed into an Event subclass
chosen by the element name. Events that concern an item carry an item_id, events that concern a folder a folder_id.
"""
import logging

from .fields import TextField, DateTimeField, IntegerField, EWSElementField
from .properties import ComplexProperty, ItemId, FolderId

log = logging.getLogger(__name__)

# Event types, as used in the EventTypes element of a subscription request
COPIED_EVENT = 'CopiedEvent'
CREATED_EVENT = 'CreatedEvent'
DELETED_EVENT = 'DeletedEvent'
MODIFIED_EVENT = 'ModifiedEvent'
MOVED_EVENT = 'MovedEvent'
NEW_MAIL_EVENT = 'NewMailEvent'
FREE_BUSY_CHANGED_EVENT = 'FreeBusyChangedEvent'
STATUS_EVENT = 'StatusEvent'
EVENT_TYPES = (COPIED_EVENT, CREATED_EVENT, DELETED_EVENT, MODIFIED_EVENT, MOVED_EVENT, NEW_MAIL_EVENT,
               FREE_BUSY_CHANGED_EVENT)

ITEM = 'item'
FOLDER = 'folder'


class Event(ComplexProperty):
    """Base class for all events"""
    FIELDS = (
        TextField('watermark', field_uri='Watermark'),
    )


class TimestampEvent(Event):
    FIELDS = Event.FIELDS + (
        DateTimeField('timestamp', field_uri='TimeStamp'),
        EWSElementField('item_id', field_uri='ItemId', value_cls=ItemId),
        EWSElementField('folder_id', field_uri='FolderId', value_cls=FolderId),
        EWSElementField('parent_folder_id', field_uri='ParentFolderId', value_cls=FolderId),
    )

    @property
    def event_type(self):
        if self.item_id is not None:
            return ITEM
        if self.folder_id is not None:
            return FOLDER
        return None  # Empty object


class OldTimestampEvent(TimestampEvent):
    FIELDS = TimestampEvent.FIELDS + (
        EWSElementField('old_item_id', field_uri='OldItemId', value_cls=ItemId),
        EWSElementField('old_folder_id', field_uri='OldFolderId', value_cls=FolderId),
        EWSElementField('old_parent_folder_id', field_uri='OldParentFolderId', value_cls=FolderId),
    )


class CopiedEvent(OldTimestampEvent):
    ELEMENT_NAME = COPIED_EVENT


class CreatedEvent(TimestampEvent):
    ELEMENT_NAME = CREATED_EVENT


class DeletedEvent(TimestampEvent):
    ELEMENT_NAME = DELETED_EVENT


class ModifiedEvent(TimestampEvent):
    ELEMENT_NAME = MODIFIED_EVENT
    FIELDS = TimestampEvent.FIELDS + (
        IntegerField('unread_count', field_uri='UnreadCount'),
    )


class MovedEvent(OldTimestampEvent):
    ELEMENT_NAME = MOVED_EVENT


class NewMailEvent(TimestampEvent):
    ELEMENT_NAME = NEW_MAIL_EVENT


class FreeBusyChangedEvent(TimestampEvent):
    ELEMENT_NAME = FREE_BUSY_CHANGED_EVENT


class StatusEvent(Event):
    """Sent by the server to keep the subscription alive. Carries only a watermark."""
    ELEMENT_NAME = STATUS_EVENT


EVENT_CLASSES = {cls.ELEMENT_NAME: cls for cls in (
    CopiedEvent, CreatedEvent, DeletedEvent, ModifiedEvent, MovedEvent, NewMailEvent, FreeBusyChangedEvent,
    StatusEvent,
)}


def create_from_xml(reader):
    """Returns the event that 'reader' points to, or None if the element name is unknown"""
    cls = EVENT_CLASSES.get(reader.local_name)
    if cls is None:
        return None
    event = cls()
    event.load_from_xml(reader)
    return event


Event.create_from_xml = staticmethod(create_from_xml)


class NotificationGroup:
    """The events that were delivered for one subscription in one notification.

    MSDN:
    https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/notification-ex15websvcsotherref
    """
    def __init__(self, subscription_id, events=None, previous_watermark=None, more_events=False):
        self.subscription_id = subscription_id
        self.events = list(events or ())
        self.previous_watermark = previous_watermark
        self.more_events = more_events

    @classmethod
    def from_xml(cls, reader):
        group = cls(subscription_id=reader.read_element_value('SubscriptionId'))
        group.previous_watermark = reader.read_element_value('PreviousWatermark')
        group.more_events = bool(reader.read_element_value('MoreEvents', value_cls=bool))
        for child in reader.children():
            if child.local_name in ('SubscriptionId', 'PreviousWatermark', 'MoreEvents'):
                continue
            event = create_from_xml(child)
            if event is None:
                log.debug('Skipping unknown event %s', child.local_name)
                continue
            group.events.append(event)
        return group

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r)' % (self.subscription_id, self.events)
