from lxml.etree import QName

from exchangews.errors import ServiceLocalException, PropertyCannotBeUpdated, InvalidOperation, PropertyNotLoaded, \
    ErrorItemNotFound, ServiceValidationException
from exchangews.folders import Folder, CalendarFolder, ContactsFolder, TasksFolder, folder_class_for, to_folder_id, \
    HARD_DELETE
from exchangews.items import Item, EmailMessage, Task
from exchangews.properties import FolderId, DistinguishedFolderId
from exchangews.schema import schema_for
from exchangews.search_filters import SearchFilterCollection, ContainsSubstring, Exists, AND
from exchangews.service_object import PropertySet
from exchangews.services import SHALLOW, DEEP
from exchangews.util import MNS, TNS

from .common import MockedEWSTest, TimedTestCase, service_response, success_message, error_message

INBOX = '''\
<m:Folders>
  <t:Folder>
    <t:FolderId Id="F1" ChangeKey="C1"/>
    <t:ParentFolderId Id="ROOT" ChangeKey="C0"/>
    <t:FolderClass>IPF.Note</t:FolderClass>
    <t:DisplayName>Inbox</t:DisplayName>
    <t:TotalCount>12</t:TotalCount>
    <t:ChildFolderCount>0</t:ChildFolderCount>
    <t:UnreadCount>3</t:UnreadCount>
  </t:Folder>
</m:Folders>'''

CALENDAR = '''\
<m:Folders>
  <t:CalendarFolder>
    <t:FolderId Id="F2" ChangeKey="C2"/>
    <t:DisplayName>Calendar</t:DisplayName>
  </t:CalendarFolder>
</m:Folders>'''


def local_names(elem):
    return [QName(e).localname for e in elem]


class FolderHelpersTest(TimedTestCase):
    def test_folder_class_for(self):
        self.assertEqual(folder_class_for('CalendarFolder'), CalendarFolder)
        self.assertEqual(folder_class_for('TasksFolder'), TasksFolder)
        self.assertEqual(folder_class_for('SearchFolder'), Folder)

    def test_to_folder_id(self):
        self.assertIsInstance(to_folder_id('inbox'), DistinguishedFolderId)
        folder_id = to_folder_id('AAA')
        self.assertIsInstance(folder_id, FolderId)
        self.assertEqual(folder_id.id, 'AAA')
        self.assertIs(to_folder_id(folder_id), folder_id)


class FolderTest(MockedEWSTest):
    def test_bind(self):
        self.mock_response(service_response('GetFolder', success_message('GetFolder', INBOX)))
        folder = Folder.bind(self.account, 'inbox')
        self.assertEqual(folder.__class__, Folder)
        self.assertEqual(folder.id.id, 'F1')
        self.assertEqual(folder.id.changekey, 'C1')
        self.assertEqual(folder.parent_folder_id.id, 'ROOT')
        self.assertEqual(folder.display_name, 'Inbox')
        self.assertEqual(folder.total_count, 12)
        self.assertEqual(folder.unread_count, 3)
        self.assertFalse(folder.is_new)
        self.assertFalse(folder.is_dirty)

        payload = self.request_xml().find('.//{%s}GetFolder' % MNS)
        self.assertEqual(payload.find('{%s}FolderShape/{%s}BaseShape' % (MNS, TNS)).text, 'AllProperties')
        folder_id = payload.find('{%s}FolderIds/{%s}DistinguishedFolderId' % (MNS, TNS))
        self.assertEqual(folder_id.get('Id'), 'inbox')

    def test_bind_typed(self):
        self.mock_response(service_response('GetFolder', success_message('GetFolder', CALENDAR)))
        folder = Folder.bind(self.account, 'calendar')
        self.assertIsInstance(folder, CalendarFolder)
        self.assertEqual(folder.display_name, 'Calendar')

    def test_bind_incompatible(self):
        self.mock_response(service_response('GetFolder', success_message('GetFolder', CALENDAR)))
        with self.assertRaises(ServiceLocalException):
            ContactsFolder.bind(self.account, 'calendar')

    def test_save(self):
        self.mock_response(service_response('CreateFolder', success_message(
            'CreateFolder', '<m:Folders><t:ContactsFolder><t:FolderId Id="NEW" ChangeKey="NC"/></t:ContactsFolder>'
                            '</m:Folders>')))
        folder = ContactsFolder(account=self.account, display_name='Friends')
        self.assertTrue(folder.is_new)
        folder.save('msgfolderroot')
        # The container class is filled in for typed folders
        self.assertEqual(folder.folder_class, 'IPF.Contact')
        self.assertEqual(folder.id.id, 'NEW')
        self.assertEqual(folder.display_name, 'Friends')
        self.assertFalse(folder.is_new)
        self.assertFalse(folder.is_dirty)

        payload = self.request_xml().find('.//{%s}CreateFolder' % MNS)
        parent = payload.find('{%s}ParentFolderId/{%s}DistinguishedFolderId' % (MNS, TNS))
        self.assertEqual(parent.get('Id'), 'msgfolderroot')
        new_folder = payload.find('{%s}Folders/{%s}ContactsFolder' % (MNS, TNS))
        self.assertEqual(new_folder.find('{%s}FolderClass' % TNS).text, 'IPF.Contact')
        self.assertEqual(new_folder.find('{%s}DisplayName' % TNS).text, 'Friends')

        with self.assertRaises(InvalidOperation):
            folder.save('msgfolderroot')

    def test_update(self):
        self.mock_responses(
            service_response('GetFolder', success_message('GetFolder', INBOX)),
            service_response('UpdateFolder', success_message(
                'UpdateFolder', '<m:Folders><t:Folder><t:FolderId Id="F1" ChangeKey="C9"/></t:Folder></m:Folders>')),
        )
        folder = Folder.bind(self.account, 'inbox')
        # Nothing to send yet
        folder.update()
        self.assertEqual(len(self.m.request_history), 1)

        folder.display_name = 'Renamed'
        self.assertTrue(folder.is_dirty)
        folder.update()
        self.assertEqual(folder.id.changekey, 'C9')
        self.assertEqual(folder.display_name, 'Renamed')
        self.assertFalse(folder.is_dirty)

        change = self.request_xml(1).find('.//{%s}FolderChanges/{%s}FolderChange' % (MNS, TNS))
        self.assertEqual(change.find('{%s}FolderId' % TNS).get('Id'), 'F1')
        set_field = change.find('{%s}Updates/{%s}SetFolderField' % (TNS, TNS))
        self.assertEqual(set_field.find('{%s}FieldURI' % TNS).get('FieldURI'), 'folder:DisplayName')
        self.assertEqual(set_field.find('{%s}Folder/{%s}DisplayName' % (TNS, TNS)).text, 'Renamed')

    def test_read_only_property(self):
        self.mock_response(service_response('GetFolder', success_message('GetFolder', INBOX)))
        folder = Folder.bind(self.account, 'inbox')
        with self.assertRaises(PropertyCannotBeUpdated):
            folder.total_count = 5

    def test_delete(self):
        self.mock_responses(
            service_response('GetFolder', success_message('GetFolder', INBOX)),
            service_response('DeleteFolder', success_message('DeleteFolder')),
        )
        folder = Folder.bind(self.account, 'inbox')
        folder.delete()
        self.assertTrue(folder.is_new)
        payload = self.request_xml(1).find('.//{%s}DeleteFolder' % MNS)
        self.assertEqual(payload.get('DeleteType'), HARD_DELETE)
        self.assertEqual(payload.find('{%s}FolderIds/{%s}FolderId' % (MNS, TNS)).get('Id'), 'F1')
        # A deleted folder has no id to act on
        with self.assertRaises(InvalidOperation):
            folder.delete()


FOUND_ITEMS = '''\
<m:RootFolder IndexedPagingOffset="2" TotalItemsInView="2" IncludesLastItemInRange="true">
  <t:Items>
    <t:Message>
      <t:ItemId Id="I1" ChangeKey="K1"/>
      <t:Subject>Hello</t:Subject>
    </t:Message>
    <t:Task>
      <t:ItemId Id="I2" ChangeKey="K2"/>
      <t:Subject>Chores</t:Subject>
    </t:Task>
  </t:Items>
</m:RootFolder>'''

EMPTY_PAGE = '<m:RootFolder TotalItemsInView="0" IncludesLastItemInRange="true"><t:Items/></m:RootFolder>'

FOUND_FOLDERS = '''\
<m:RootFolder IndexedPagingOffset="1" TotalItemsInView="1" IncludesLastItemInRange="true">
  <t:Folders>
    <t:CalendarFolder>
      <t:FolderId Id="F2" ChangeKey="C2"/>
      <t:DisplayName>Holidays</t:DisplayName>
    </t:CalendarFolder>
  </t:Folders>
</m:RootFolder>'''


class FolderSearchTest(MockedEWSTest):
    def test_find_items(self):
        self.mock_responses(
            service_response('GetFolder', success_message('GetFolder', INBOX)),
            service_response('FindItem', success_message('FindItem', FOUND_ITEMS)),
        )
        folder = Folder.bind(self.account, 'inbox')
        subject = schema_for(Item).get_by_name('subject')
        items = list(folder.find_items(search_filter=SearchFilterCollection(AND, [
            ContainsSubstring(subject, value='hello'),
            Exists(subject),
        ])))
        self.assertEqual([type(i) for i in items], [EmailMessage, Task])
        self.assertEqual([i.id.id for i in items], ['I1', 'I2'])
        self.assertEqual([i.subject for i in items], ['Hello', 'Chores'])
        self.assertFalse(items[0].is_dirty)
        # FindItem only returns summary properties
        self.assertIsNone(items[0].importance)
        with self.assertRaises(PropertyNotLoaded):
            items[0].body

        payload = self.request_xml(1).find('.//{%s}FindItem' % MNS)
        self.assertEqual(payload.get('Traversal'), SHALLOW)
        self.assertEqual(local_names(payload), ['ItemShape', 'IndexedPageItemView', 'Restriction', 'ParentFolderIds'])
        self.assertEqual(payload.find('{%s}ItemShape/{%s}BaseShape' % (MNS, TNS)).text, 'AllProperties')
        view = payload.find('{%s}IndexedPageItemView' % MNS)
        self.assertEqual((view.get('Offset'), view.get('BasePoint')), ('0', 'Beginning'))
        restriction = payload.find('{%s}Restriction' % MNS)
        self.assertEqual(local_names(restriction), ['And'])
        self.assertEqual(local_names(restriction[0]), ['Contains', 'Exists'])
        self.assertEqual(restriction.find('.//{%s}Constant' % TNS).get('Value'), 'hello')
        self.assertEqual(payload.find('{%s}ParentFolderIds/{%s}FolderId' % (MNS, TNS)).get('Id'), 'F1')

    def test_find_items_without_filter(self):
        self.mock_responses(
            service_response('GetFolder', success_message('GetFolder', INBOX)),
            service_response('FindItem', success_message('FindItem', EMPTY_PAGE)),
        )
        folder = Folder.bind(self.account, 'inbox')
        self.assertEqual(list(folder.find_items(property_set=PropertySet.ID_ONLY)), [])
        payload = self.request_xml(1).find('.//{%s}FindItem' % MNS)
        self.assertIsNone(payload.find('{%s}Restriction' % MNS))
        self.assertEqual(payload.find('{%s}ItemShape/{%s}BaseShape' % (MNS, TNS)).text, 'IdOnly')

    def test_find_items_error(self):
        self.mock_responses(
            service_response('GetFolder', success_message('GetFolder', INBOX)),
            service_response('FindItem', error_message('FindItem', 'ErrorItemNotFound')),
        )
        folder = Folder.bind(self.account, 'inbox')
        with self.assertRaises(ErrorItemNotFound):
            list(folder.find_items())

    def test_find_folders(self):
        self.mock_responses(
            service_response('GetFolder', success_message('GetFolder', INBOX)),
            service_response('FindFolder', success_message('FindFolder', FOUND_FOLDERS)),
        )
        folder = Folder.bind(self.account, 'inbox')
        folders = list(folder.find_folders(traversal=DEEP))
        self.assertEqual(len(folders), 1)
        self.assertIsInstance(folders[0], CalendarFolder)
        self.assertEqual(folders[0].display_name, 'Holidays')
        payload = self.request_xml(1).find('.//{%s}FindFolder' % MNS)
        self.assertEqual(payload.get('Traversal'), DEEP)
        self.assertEqual(local_names(payload), ['FolderShape', 'IndexedPageFolderView', 'ParentFolderIds'])

    def test_find_traversal(self):
        self.mock_response(service_response('GetFolder', success_message('GetFolder', INBOX)))
        folder = Folder.bind(self.account, 'inbox')
        # Deep traversal is only valid for folders
        with self.assertRaises(ValueError):
            list(folder.find_items(traversal=DEEP))
        with self.assertRaises(ValueError):
            list(folder.find_folders(traversal='Sideways'))
        with self.assertRaises(ServiceValidationException):
            list(folder.find_items(search_filter=Exists()))
        # Nothing was sent
        self.assertEqual(len(self.m.request_history), 1)
