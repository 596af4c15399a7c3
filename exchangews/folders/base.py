import logging

from ..errors import ServiceLocalException
from ..fields import IntegerField, TextField, EWSElementField, EffectiveRightsField, IdField
from ..properties import FolderId, ParentFolderId, DistinguishedFolderId
from ..schema import register_schema_class
from ..service_object import ServiceObject, PropertySet
from ..services.common import SHALLOW

log = logging.getLogger(__name__)

# DeleteType values for folders. See
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/deletefolder
HARD_DELETE = 'HardDelete'

# Names that may be used in place of a FolderId. See
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/distinguishedfolderid
WELL_KNOWN_FOLDER_NAMES = (
    'calendar', 'contacts', 'deleteditems', 'drafts', 'inbox', 'journal', 'notes', 'outbox', 'sentitems', 'tasks',
    'msgfolderroot', 'publicfoldersroot', 'root', 'junkemail', 'searchfolders', 'voicemail', 'recoverableitemsroot',
    'recoverableitemsdeletions', 'recoverableitemsversions', 'recoverableitemspurges', 'archiveroot',
    'archivemsgfolderroot', 'archivedeleteditems', 'archiveinbox', 'archiverecoverableitemsroot',
    'archiverecoverableitemsdeletions', 'archiverecoverableitemsversions', 'archiverecoverableitemspurges',
    'syncissues', 'conflicts', 'localfailures', 'serverfailures', 'recipientcache', 'quickcontacts',
    'conversationhistory', 'adminauditlogs', 'todosearch', 'mycontacts', 'directory', 'imcontactlist',
    'peopleconnect', 'favorites',
)

# Maps the XML element name of a folder to the class that models it
_folder_classes = {}


def register_folder_class(cls):
    """Class decorator. Makes the class known to folder_class_for() and to the FieldURI index."""
    _folder_classes[cls.ELEMENT_NAME] = cls
    register_schema_class(cls)
    return cls


def folder_class_for(element_name):
    try:
        return _folder_classes[element_name]
    except KeyError:
        log.debug('Unknown folder type %s. Using Folder', element_name)
        return _folder_classes['Folder']


def to_folder_id(folder):
    """Accepts a Folder, a FolderId, a DistinguishedFolderId or the name of a well-known folder"""
    if isinstance(folder, (FolderId, DistinguishedFolderId)):
        return folder
    if isinstance(folder, ServiceObject):
        return folder.get_id()
    if isinstance(folder, str) and folder in WELL_KNOWN_FOLDER_NAMES:
        return DistinguishedFolderId(folder)
    return FolderId(folder)


@register_folder_class
class Folder(ServiceObject):
    """A generic mail folder.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/folder
    """
    ELEMENT_NAME = 'Folder'
    ID_FIELD = IdField('id', field_uri='folder:FolderId', value_cls=FolderId)

    CHANGE_ELEMENT_NAME = 'FolderChange'
    SET_FIELD_ELEMENT_NAME = 'SetFolderField'
    DELETE_FIELD_ELEMENT_NAME = 'DeleteFolderField'
    APPEND_FIELD_ELEMENT_NAME = 'AppendToFolderField'

    # Default item type for this folder. See
    # https://docs.microsoft.com/en-us/openspecs/exchange_server_protocols/ms-oxosfld/68a85898-84fe-43c4-b166-4711c13cdd61
    CONTAINER_CLASS = None

    FIELDS = (
        ID_FIELD,
        EWSElementField('parent_folder_id', field_uri='folder:ParentFolderId', value_cls=ParentFolderId,
                        is_read_only=True),
        TextField('folder_class', field_uri='folder:FolderClass'),
        TextField('display_name', field_uri='folder:DisplayName'),
        IntegerField('total_count', field_uri='folder:TotalCount', is_read_only=True),
        IntegerField('child_folder_count', field_uri='folder:ChildFolderCount', is_read_only=True),
        EffectiveRightsField('effective_rights', field_uri='folder:EffectiveRights'),
        IntegerField('unread_count', field_uri='folder:UnreadCount', is_read_only=True),
    )

    @classmethod
    def bind(cls, account, folder_id, property_set=None):
        """Fetches a folder from the server. 'folder_id' may be the name of a well-known folder, e.g. 'inbox'"""
        from ..services import GetFolder
        from ..services.common import single_result
        if property_set is None:
            property_set = PropertySet.FIRST_CLASS_PROPERTIES
        reader = single_result(GetFolder(account=account).call(folders=[to_folder_id(folder_id)],
                                                               property_set=property_set))
        folder_cls = folder_class_for(reader.local_name)
        if not issubclass(folder_cls, cls):
            raise ServiceLocalException('The folder type returned by the service (%s) is not compatible with %s' % (
                folder_cls.__name__, cls.__name__))
        return folder_cls.from_xml(reader, account=account, requested_property_set=property_set)

    def find_items(self, search_filter=None, property_set=None, traversal=SHALLOW, max_items=None, offset=0):
        """Searches the items in this folder. Returns a generator of items matching 'search_filter', or of all items
        if 'search_filter' is None. Items are loaded with the summary properties FindItem can return.
        """
        from ..items import item_class_for
        from ..services import FindItem
        if property_set is None:
            property_set = PropertySet.FIRST_CLASS_PROPERTIES
        readers = FindItem(account=self.account).call(folders=[self.get_id()], property_set=property_set,
                                                      restriction=search_filter, traversal=traversal,
                                                      max_items=max_items, offset=offset)
        for reader in readers:
            if isinstance(reader, Exception):
                raise reader
            yield item_class_for(reader.local_name).from_xml(reader, account=self.account,
                                                             requested_property_set=property_set, summary_only=True)

    def find_folders(self, search_filter=None, property_set=None, traversal=SHALLOW, max_items=None, offset=0):
        """Returns a generator of the subfolders of this folder that match 'search_filter'. Use traversal='Deep' to
        search the whole folder tree below this folder.
        """
        from ..services import FindFolder
        if property_set is None:
            property_set = PropertySet.FIRST_CLASS_PROPERTIES
        readers = FindFolder(account=self.account).call(folders=[self.get_id()], property_set=property_set,
                                                        restriction=search_filter, traversal=traversal,
                                                        max_items=max_items, offset=offset)
        for reader in readers:
            if isinstance(reader, Exception):
                raise reader
            yield folder_class_for(reader.local_name).from_xml(reader, account=self.account,
                                                               requested_property_set=property_set)

    def save(self, parent_folder):
        if self.is_new and self.CONTAINER_CLASS and self.try_get_property('folder_class')[1] is None:
            self.folder_class = self.CONTAINER_CLASS
        return super().save(to_folder_id(parent_folder))

    def update(self):
        return super().update()

    def delete(self, delete_type=HARD_DELETE):
        return super().delete(delete_type)

    def _get(self, property_set):
        from ..services import GetFolder
        from ..services.common import single_result
        return single_result(GetFolder(account=self.account).call(folders=[self.get_id()], property_set=property_set))

    def _create(self, parent_folder):
        from ..services import CreateFolder
        from ..services.common import single_result
        return single_result(CreateFolder(account=self.account).call(parent_folder=parent_folder, folders=[self]))

    def _update(self):
        from ..services import UpdateFolder
        from ..services.common import single_result
        return single_result(UpdateFolder(account=self.account).call(folders=[self]))

    def _delete(self, delete_type):
        from ..services import DeleteFolder
        from ..services.common import single_result
        single_result(DeleteFolder(account=self.account).call(folders=[self.get_id()], delete_type=delete_type))

    def _check_type(self, reader):
        if self.__class__ is Folder:
            return
        super()._check_type(reader)
