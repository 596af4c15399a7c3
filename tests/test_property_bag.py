from decimal import Decimal

from lxml.etree import QName

from exchangews.errors import PropertyNotLoaded, PropertyReadOnly, PropertyCannotBeDeleted, \
    PropertyCannotBeUpdated, ServiceObjectPropertyException, ServiceVersionException, ServiceValidationException, \
    InvalidOperation
from exchangews.ewsdatetime import EWSDate, EWSDateTime, UTC
from exchangews.items import Item, EmailMessage, Task, Appointment
from exchangews.properties import Flag, Mailbox, ItemId, Body, Attendee, values_are_same
from exchangews.recurrence import Recurrence, DailyRegeneration
from exchangews.service_object import PropertySet
from exchangews.util import to_xml, xml_to_str, TNS, MNS
from exchangews.version import Version, EXCHANGE_2010
from exchangews.xml_rw import EwsXmlReader, EwsXmlWriter

from .common import MockedEWSTest, service_response, success_message


def load_item(cls, account, content, property_set=PropertySet.FIRST_CLASS_PROPERTIES):
    """Creates an existing item from the XML that a GetItem response would contain"""
    xml = '<t:%(name)s xmlns:t="%(ns)s"><t:ItemId Id="AAA" ChangeKey="BBB"/>%(content)s</t:%(name)s>' % dict(
        name=cls.ELEMENT_NAME, ns=TNS, content=content)
    reader = EwsXmlReader(to_xml(xml.encode('utf-8')).getroot(), version=account.version)
    return cls.from_xml(reader, account=account, requested_property_set=property_set)


def local_names(elem):
    return [QName(e).localname for e in elem]


class PropertyBagTest(MockedEWSTest):
    def test_unset_property_on_new_object(self):
        task = Task(account=self.account)
        self.assertTrue(task.is_new)
        self.assertIsNone(task.id)
        with self.assertRaises(PropertyNotLoaded):
            task.subject
        # Collections are created on first read, and the same instance is returned afterwards
        msg = EmailMessage(account=self.account)
        recipients = msg.to_recipients
        self.assertEqual(len(recipients), 0)
        self.assertIs(msg.to_recipients, recipients)

    def test_requested_but_missing_property(self):
        task = load_item(Task, self.account, '<t:Subject>Foo</t:Subject>')
        self.assertFalse(task.is_new)
        self.assertEqual(task.id, ItemId('AAA', 'BBB'))
        self.assertEqual(task.subject, 'Foo')
        # Nullable fields that were requested but not returned are None
        self.assertIsNone(task.mileage)
        # Value fields have no None value
        with self.assertRaises(ServiceObjectPropertyException) as e:
            task.is_complete
        self.assertIs(type(e.exception), ServiceObjectPropertyException)
        self.assertEqual(e.exception.field.name, 'is_complete')
        # Not part of the first-class properties
        with self.assertRaises(PropertyNotLoaded):
            task.unique_body

    def test_id_only_property_set(self):
        task = load_item(Task, self.account, '', property_set=PropertySet.ID_ONLY)
        with self.assertRaises(PropertyNotLoaded):
            task.subject
        found, value = task.try_get_property('subject')
        self.assertFalse(found)
        self.assertIsNone(value)
        with self.assertRaises(KeyError):
            task.try_get_property('no_such_property')

    def test_additional_properties(self):
        unique_body = Item.FIELDS[-2]
        self.assertEqual(unique_body.name, 'unique_body')
        property_set = PropertySet(base_shape='IdOnly', additional_properties=[unique_body])
        task = load_item(Task, self.account, '', property_set=property_set)
        self.assertIsNone(task.unique_body)
        with self.assertRaises(PropertyNotLoaded):
            task.subject

    def test_read_only_on_new_object(self):
        task = Task(account=self.account)
        with self.assertRaises(PropertyReadOnly):
            task.is_complete = True
        with self.assertRaises(PropertyReadOnly):
            Task(account=self.account, change_count=2)
        with self.assertRaises(AttributeError):
            Task(account=self.account, no_such_property=2)

    def test_read_only_on_existing_object(self):
        task = load_item(Task, self.account, '<t:ChangeCount>3</t:ChangeCount>')
        self.assertEqual(task.change_count, 3)
        with self.assertRaises(PropertyCannotBeUpdated):
            task.change_count = 5
        with self.assertRaises(PropertyCannotBeDeleted):
            del task.change_count
        self.assertEqual(task.change_count, 3)
        self.assertFalse(task.is_dirty)

    def test_value_cleaning(self):
        task = Task(account=self.account)
        task.percent_complete = Decimal(50)
        with self.assertRaises(ValueError):
            task.percent_complete = Decimal(101)
        with self.assertRaises(TypeError):
            task.subject = 42
        task.body = 'Hello'
        self.assertEqual(task.body.value, 'Hello')
        self.assertEqual(task.body.body_type, 'Text')

    def test_version_gating(self):
        self.account.version = Version(EXCHANGE_2010)
        item = Item(account=self.account)
        with self.assertRaises(ServiceVersionException):
            item.flag
        with self.assertRaises(ServiceVersionException):
            item.flag = Flag(flag_status='Flagged')
        # Supported from Exchange 2010
        self.assertFalse(item.try_get_property('is_associated')[0])
        with self.assertRaises(ServiceVersionException):
            PropertySet(additional_properties=[Item.FIELDS[-1]]).validate(self.account.version)

    def test_change_log(self):
        task = load_item(Task, self.account, '<t:Subject>Foo</t:Subject><t:Mileage>12 km</t:Mileage>')
        bag = task.property_bag
        self.assertFalse(task.is_dirty)
        task.subject = 'Bar'
        task.billing_information = 'Customer X'
        del task.mileage
        self.assertEqual([f.name for f in bag.modified_properties], ['subject'])
        self.assertEqual([f.name for f in bag.added_properties], ['billing_information'])
        self.assertEqual([f.name for f in bag.deleted_properties], ['mileage'])
        self.assertTrue(task.is_dirty)
        # Setting the same value again is still a modification
        task.clear_change_log()
        task.subject = 'Bar'
        self.assertEqual([f.name for f in bag.modified_properties], ['subject'])
        # A new value that is set twice stays an addition
        new_task = Task(account=self.account)
        new_task.subject = 'A'
        new_task.subject = 'B'
        self.assertEqual([f.name for f in new_task.property_bag.added_properties], ['subject'])
        self.assertEqual(new_task.property_bag.modified_properties, ())

    def test_deleted_then_set(self):
        task = load_item(Task, self.account, '<t:Mileage>12 km</t:Mileage>')
        task.mileage = None
        self.assertIsNone(task.mileage)
        task.mileage = '13 km'
        bag = task.property_bag
        self.assertEqual(bag.deleted_properties, ())
        self.assertEqual([f.name for f in bag.modified_properties], ['mileage'])

    def test_complex_property_change(self):
        task = load_item(Task, self.account, '<t:Body BodyType="Text">Hello</t:Body>')
        self.assertEqual(task.body.value, 'Hello')
        self.assertFalse(task.is_dirty)
        task.body.body_type = 'HTML'
        self.assertEqual([f.name for f in task.property_bag.modified_properties], ['body'])
        # A replaced value is disconnected from the bag
        old_body = task.body
        task.body = 'New body'
        task.clear_change_log()
        old_body.body_type = 'Text'
        self.assertFalse(task.is_dirty)

    def test_on_change(self):
        task = Task(account=self.account)
        changed = []
        task.on_change.append(changed.append)
        task.subject = 'Foo'
        task.body = 'Bar'
        task.body.body_type = 'HTML'
        self.assertEqual(changed, [task, task, task])

    def test_validate(self):
        item = Item(account=self.account, flag=Flag())
        with self.assertRaises(ServiceValidationException):
            item.validate()
        item.flag.flag_status = 'Flagged'
        item.validate()
        msg = EmailMessage(account=self.account)
        msg.to_recipients.add(Mailbox(name='No address'))
        with self.assertRaises(ServiceValidationException):
            msg.validate()

    def test_write_for_update(self):
        task = load_item(Task, self.account, '<t:Subject>Foo</t:Subject><t:Mileage>12 km</t:Mileage>')
        task.subject = 'Bar'
        del task.mileage
        writer = EwsXmlWriter(version=self.account.version)
        task.write_to_xml_for_update(writer)
        change = writer.root
        self.assertEqual(QName(change).localname, 'ItemChange')
        self.assertEqual(local_names(change), ['ItemId', 'Updates'])
        self.assertEqual(change.find('{%s}ItemId' % TNS).get('ChangeKey'), 'BBB')
        set_field, delete_field = change.find('{%s}Updates' % TNS)
        self.assertEqual(QName(set_field).localname, 'SetItemField')
        self.assertEqual(local_names(set_field), ['FieldURI', 'Task'])
        self.assertEqual(set_field.find('{%s}FieldURI' % TNS).get('FieldURI'), 'item:Subject')
        self.assertEqual(set_field.findtext('{%(ns)s}Task/{%(ns)s}Subject' % dict(ns=TNS)), 'Bar')
        self.assertEqual(QName(delete_field).localname, 'DeleteItemField')
        self.assertEqual(local_names(delete_field), ['FieldURI'])
        self.assertEqual(delete_field.find('{%s}FieldURI' % TNS).get('FieldURI'), 'task:Mileage')

    def test_write_for_create(self):
        task = Task(account=self.account, subject='Foo', percent_complete=Decimal(10))
        writer = EwsXmlWriter(version=self.account.version)
        task.write_to_xml(writer)
        self.assertEqual(QName(writer.root).localname, 'Task')
        self.assertEqual(writer.root.findtext('{%s}Subject' % TNS), 'Foo')
        self.assertEqual(writer.root.findtext('{%s}PercentComplete' % TNS), '10')
        # Item fields come before Task fields
        self.assertEqual(local_names(writer.root), ['Subject', 'PercentComplete'])

    def _reload(self, obj):
        """Writes 'obj' as it would be sent to the server, and loads a new object of the same class from that XML"""
        writer = EwsXmlWriter(version=self.account.version)
        obj.write_to_xml(writer)
        reader = EwsXmlReader(to_xml(xml_to_str(writer.root, encoding='utf-8')).getroot(), version=self.account.version)
        return obj.__class__.from_xml(reader, account=self.account)

    def test_write_then_load(self):
        task = Task(
            account=self.account,
            subject='Foo',
            body=Body('Hello there'),
            categories=['Red', 'Blue'],
            due_date=EWSDateTime(2020, 1, 2, 3, 4, 5, tzinfo=UTC),
            percent_complete=Decimal('12.5'),
            recurrence=Recurrence(pattern=DailyRegeneration(interval=2), start=EWSDate(2020, 1, 1), number=4),
        )
        loaded = self._reload(task)
        self.assertEqual(
            [f.name for f in loaded.property_bag.loaded_properties],
            ['subject', 'body', 'categories', 'due_date', 'percent_complete', 'recurrence'],
        )
        self.assertFalse(loaded.is_dirty)
        for name in ('subject', 'body', 'categories', 'due_date', 'percent_complete', 'recurrence'):
            with self.subTest(name=name):
                self.assertTrue(values_are_same(getattr(loaded, name), getattr(task, name)))
        self.assertIsInstance(loaded.recurrence.pattern, DailyRegeneration)
        self.assertEqual(loaded.due_date, EWSDateTime(2020, 1, 2, 3, 4, 5, tzinfo=UTC))
        self.assertEqual(loaded.percent_complete, Decimal('12.5'))
        self.assertEqual(loaded.body.value, 'Hello there')

        appointment = Appointment(
            account=self.account,
            required_attendees=[
                Attendee(mailbox=Mailbox(email_address='anne@example.com')),
                Attendee(mailbox=Mailbox(email_address='bob@example.com')),
            ],
        )
        loaded = self._reload(appointment)
        self.assertEqual([f.name for f in loaded.property_bag.loaded_properties], ['required_attendees'])
        self.assertTrue(values_are_same(loaded.required_attendees, appointment.required_attendees))
        self.assertEqual([a.mailbox.email_address for a in loaded.required_attendees],
                         ['anne@example.com', 'bob@example.com'])
        # Loaded collection items are not changes
        self.assertEqual(loaded.required_attendees.added_items, [])


RECIPIENTS = '''\
<t:ToRecipients>
  <t:Mailbox><t:EmailAddress>anne@example.com</t:EmailAddress></t:Mailbox>
  <t:Mailbox><t:EmailAddress>bob@example.com</t:EmailAddress></t:Mailbox>
</t:ToRecipients>'''

UPDATED_MESSAGE = '<m:Items><t:Message><t:ItemId Id="AAA" ChangeKey="CCC"/></t:Message></m:Items>'


class CollectionUpdateTest(MockedEWSTest):
    def _updates(self):
        return self.request_xml().find('.//{%s}Updates' % TNS)

    def test_append_only_additions(self):
        msg = load_item(EmailMessage, self.account, RECIPIENTS)
        self.assertEqual([m.email_address for m in msg.to_recipients], ['anne@example.com', 'bob@example.com'])
        msg.to_recipients.add(Mailbox(email_address='carl@example.com'))
        self.assertEqual([f.name for f in msg.property_bag.modified_properties], ['to_recipients'])
        self.mock_response(service_response('UpdateItem', success_message('UpdateItem', UPDATED_MESSAGE)))
        msg.update()
        updates = self._updates()
        self.assertEqual(local_names(updates), ['AppendToItemField'])
        self.assertEqual(updates[0].find('{%s}FieldURI' % TNS).get('FieldURI'), 'message:ToRecipients')
        addresses = updates[0].findall('.//{%s}EmailAddress' % TNS)
        self.assertEqual([e.text for e in addresses], ['carl@example.com'])
        # The server-assigned change key is merged and the change log is cleared
        self.assertEqual(msg.id.changekey, 'CCC')
        self.assertFalse(msg.is_dirty)
        self.assertEqual(len(msg.to_recipients), 3)

    def test_set_after_removal(self):
        msg = load_item(EmailMessage, self.account, RECIPIENTS)
        self.assertTrue(msg.to_recipients.remove(msg.to_recipients[0]))
        self.mock_response(service_response('UpdateItem', success_message('UpdateItem', UPDATED_MESSAGE)))
        msg.update()
        updates = self._updates()
        self.assertEqual(local_names(updates), ['SetItemField'])
        addresses = updates[0].findall('.//{%s}EmailAddress' % TNS)
        self.assertEqual([e.text for e in addresses], ['bob@example.com'])

    def test_add_then_remove_characterization(self):
        # The addition and the removal of 'carl' are both logged, so the update is not an append. The whole
        # collection is set, and 'carl' is not sent.
        msg = load_item(EmailMessage, self.account, RECIPIENTS)
        carl = Mailbox(email_address='carl@example.com')
        msg.to_recipients.add(carl)
        self.assertTrue(msg.to_recipients.remove(carl))
        self.assertEqual(msg.to_recipients.added_items, [carl])
        self.assertEqual(msg.to_recipients.removed_items, [carl])
        self.assertFalse(msg.to_recipients.has_only_additions)
        self.assertTrue(msg.is_dirty)
        writer = EwsXmlWriter(version=self.account.version)
        msg.write_to_xml_for_update(writer)
        updates = writer.root.find('{%s}Updates' % TNS)
        self.assertEqual(local_names(updates), ['SetItemField'])
        self.assertEqual(updates[0].find('{%s}FieldURI' % TNS).get('FieldURI'), 'message:ToRecipients')
        addresses = updates[0].findall('.//{%s}EmailAddress' % TNS)
        self.assertEqual([e.text for e in addresses], ['anne@example.com', 'bob@example.com'])

    def test_delete_when_empty(self):
        msg = load_item(EmailMessage, self.account, RECIPIENTS)
        msg.to_recipients.clear()
        self.mock_response(service_response('UpdateItem', success_message('UpdateItem', UPDATED_MESSAGE)))
        msg.update()
        updates = self._updates()
        self.assertEqual(local_names(updates), ['DeleteItemField'])
        self.assertEqual(updates[0].find('{%s}FieldURI' % TNS).get('FieldURI'), 'message:ToRecipients')

    def test_update_request(self):
        task = load_item(Task, self.account, '<t:Subject>Foo</t:Subject>')
        task.subject = 'Bar'
        self.mock_response(service_response(
            'UpdateItem',
            success_message('UpdateItem', '<m:Items><t:Task><t:ItemId Id="AAA" ChangeKey="CCC"/></t:Task></m:Items>')
        ))
        task.update()
        request = self.request_xml().find('.//{%s}UpdateItem' % MNS)
        self.assertEqual(request.get('ConflictResolution'), 'AutoResolve')
        self.assertEqual(request.get('MessageDisposition'), 'SaveOnly')
        self.assertEqual(task.subject, 'Bar')
        self.assertEqual(task.id.changekey, 'CCC')

    def test_update_without_changes(self):
        task = load_item(Task, self.account, '<t:Subject>Foo</t:Subject>')
        task.update()
        self.assertEqual(len(self.m.request_history), 0)

    def test_update_new_object(self):
        with self.assertRaises(InvalidOperation):
            Task(account=self.account, subject='Foo').update()
