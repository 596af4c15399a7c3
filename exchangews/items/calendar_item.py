import logging

from ..fields import BooleanField, IntegerField, TextField, ChoiceField, DateTimeField, RecurrenceField, \
    ContainedField, ComplexCollectionField, TimeZoneField, TimeDeltaField, LEGACY_FREE_BUSY_CHOICES, \
    RESPONSE_TYPE_CHOICES
from ..properties import Attendee, Mailbox
from .base import register_item_class, AUTO_RESOLVE, MOVE_TO_DELETED_ITEMS, SEND_TO_ALL_AND_SAVE_COPY
from .item import Item

log = logging.getLogger(__name__)

# Conference Type values. See
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/conferencetype
NET_MEETING = 0
NET_SHOW = 1
CHAT = 2
CONFERENCE_TYPES = (NET_MEETING, NET_SHOW, CHAT)

# CalendarItemType enums
SINGLE = 'Single'
OCCURRENCE = 'Occurrence'
EXCEPTION = 'Exception'
RECURRING_MASTER = 'RecurringMaster'
CALENDAR_ITEM_CHOICES = (SINGLE, OCCURRENCE, EXCEPTION, RECURRING_MASTER)


@register_item_class
class Appointment(Item):
    """A calendar item, either a plain appointment or a meeting with attendees.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/calendaritem
    """
    ELEMENT_NAME = 'CalendarItem'
    MESSAGE_DISPOSITION = None

    FIELDS = Item.FIELDS + (
        TextField('uid', field_uri='calendar:UID'),
        DateTimeField('start', field_uri='calendar:Start'),
        DateTimeField('end', field_uri='calendar:End'),
        DateTimeField('original_start', field_uri='calendar:OriginalStart', is_read_only=True),
        BooleanField('is_all_day', field_uri='calendar:IsAllDayEvent'),
        ChoiceField('legacy_free_busy_status', field_uri='calendar:LegacyFreeBusyStatus',
                    choices=LEGACY_FREE_BUSY_CHOICES),
        TextField('location', field_uri='calendar:Location'),
        TextField('when', field_uri='calendar:When'),
        BooleanField('is_meeting', field_uri='calendar:IsMeeting', is_read_only=True),
        BooleanField('is_cancelled', field_uri='calendar:IsCancelled', is_read_only=True),
        BooleanField('is_recurring', field_uri='calendar:IsRecurring', is_read_only=True),
        BooleanField('meeting_request_was_sent', field_uri='calendar:MeetingRequestWasSent', is_read_only=True),
        BooleanField('is_response_requested', field_uri='calendar:IsResponseRequested'),
        ChoiceField('type', field_uri='calendar:CalendarItemType', choices=CALENDAR_ITEM_CHOICES, is_read_only=True),
        ChoiceField('my_response_type', field_uri='calendar:MyResponseType', choices=RESPONSE_TYPE_CHOICES,
                    is_read_only=True),
        ContainedField('organizer', field_uri='calendar:Organizer', value_cls=Mailbox,
                       contained_element_name='Mailbox', is_read_only=True),
        ComplexCollectionField('required_attendees', field_uri='calendar:RequiredAttendees', item_cls=Attendee),
        ComplexCollectionField('optional_attendees', field_uri='calendar:OptionalAttendees', item_cls=Attendee),
        ComplexCollectionField('resources', field_uri='calendar:Resources', item_cls=Attendee),
        IntegerField('conflicting_meeting_count', field_uri='calendar:ConflictingMeetingCount', is_read_only=True),
        IntegerField('adjacent_meeting_count', field_uri='calendar:AdjacentMeetingCount', is_read_only=True),
        TimeDeltaField('duration', field_uri='calendar:Duration', is_read_only=True),
        DateTimeField('appointment_reply_time', field_uri='calendar:AppointmentReplyTime', is_read_only=True),
        IntegerField('appointment_sequence_number', field_uri='calendar:AppointmentSequenceNumber',
                     is_read_only=True),
        RecurrenceField('recurrence', field_uri='calendar:Recurrence'),
        TimeZoneField('start_timezone', field_uri='calendar:StartTimeZone'),
        TimeZoneField('end_timezone', field_uri='calendar:EndTimeZone'),
        IntegerField('conference_type', field_uri='calendar:ConferenceType', min=0, max=2),
        BooleanField('allow_new_time_proposal', field_uri='calendar:AllowNewTimeProposal'),
        BooleanField('is_online_meeting', field_uri='calendar:IsOnlineMeeting'),
        TextField('meeting_workspace_url', field_uri='calendar:MeetingWorkspaceUrl'),
        TextField('net_show_url', field_uri='calendar:NetShowUrl'),
    )

    def save(self, folder=None, send_meeting_invitations=SEND_TO_ALL_AND_SAVE_COPY):
        return super(Item, self).save(folder, self.MESSAGE_DISPOSITION, send_meeting_invitations)

    def update(self, conflict_resolution=AUTO_RESOLVE,
               send_meeting_invitations_or_cancellations=SEND_TO_ALL_AND_SAVE_COPY):
        return super(Item, self).update(conflict_resolution, self.MESSAGE_DISPOSITION,
                                        send_meeting_invitations_or_cancellations)

    def delete(self, delete_type=MOVE_TO_DELETED_ITEMS, send_meeting_cancellations=SEND_TO_ALL_AND_SAVE_COPY):
        return super(Item, self).delete(delete_type, send_meeting_cancellations, None)
