from decimal import Decimal
import logging

from ..fields import BooleanField, IntegerField, DecimalField, TextField, ChoiceField, DateTimeField, \
    TextListField, RecurrenceField, TASK_STATUS_CHOICES
from .base import register_item_class, MOVE_TO_DELETED_ITEMS, ALL_OCCURRENCIES
from .item import Item

log = logging.getLogger(__name__)

# DelegationState enums
DELEGATION_STATE_CHOICES = ('NoMatch', 'OwnNew', 'Owned', 'Accepted', 'Declined', 'Max')


@register_item_class
class Task(Item):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/task
    """
    ELEMENT_NAME = 'Task'

    FIELDS = Item.FIELDS + (
        IntegerField('actual_work', field_uri='task:ActualWork', min=0),
        DateTimeField('assigned_time', field_uri='task:AssignedTime', is_read_only=True),
        TextField('billing_information', field_uri='task:BillingInformation'),
        IntegerField('change_count', field_uri='task:ChangeCount', is_read_only=True, min=0),
        TextListField('companies', field_uri='task:Companies'),
        DateTimeField('complete_date', field_uri='task:CompleteDate'),
        TextListField('contacts', field_uri='task:Contacts'),
        ChoiceField('delegation_state', field_uri='task:DelegationState', choices=DELEGATION_STATE_CHOICES,
                    is_read_only=True),
        TextField('delegator', field_uri='task:Delegator', is_read_only=True),
        DateTimeField('due_date', field_uri='task:DueDate'),
        BooleanField('is_editable', field_uri='task:IsAssignmentEditable', is_read_only=True),
        BooleanField('is_complete', field_uri='task:IsComplete', is_read_only=True),
        BooleanField('is_recurring', field_uri='task:IsRecurring', is_read_only=True),
        BooleanField('is_team_task', field_uri='task:IsTeamTask', is_read_only=True),
        TextField('mileage', field_uri='task:Mileage'),
        TextField('owner', field_uri='task:Owner', is_read_only=True),
        DecimalField('percent_complete', field_uri='task:PercentComplete', min=Decimal(0), max=Decimal(100)),
        RecurrenceField('recurrence', field_uri='task:Recurrence'),
        DateTimeField('start_date', field_uri='task:StartDate'),
        ChoiceField('status', field_uri='task:Status', choices=TASK_STATUS_CHOICES),
        TextField('status_description', field_uri='task:StatusDescription', is_read_only=True),
        IntegerField('total_work', field_uri='task:TotalWork', min=0),
    )

    def delete(self, delete_type=MOVE_TO_DELETED_ITEMS, affected_task_occurrences=ALL_OCCURRENCIES):
        return super(Item, self).delete(delete_type, None, affected_task_occurrences)
