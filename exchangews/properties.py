import logging
from threading import Lock

from .errors import ServiceValidationException
from .fields import TextField, ChoiceField, DateTimeField, EWSElementField, BooleanField, \
    ROUTING_TYPE_CHOICES, MAILBOX_TYPE_CHOICES, RESPONSE_TYPE_CHOICES

log = logging.getLogger(__name__)


def values_are_same(a, b):
    """Structural comparison of field values. Complex properties are compared with is_same(), lists pairwise."""
    if isinstance(a, ComplexProperty):
        return a.is_same(b)
    if isinstance(a, ComplexPropertyCollection):
        if not isinstance(b, ComplexPropertyCollection) or len(a) != len(b):
            return False
        return all(values_are_same(x, y) for x, y in zip(a, b))
    if isinstance(a, (list, tuple)):
        if not isinstance(b, (list, tuple)) or len(a) != len(b):
            return False
        return all(values_are_same(x, y) for x, y in zip(a, b))
    return a == b


class ComplexProperty:
    """Base class for all structured property values.

    Subclasses list their attributes and child elements in FIELDS, in the order EWS expects them. Reading is done one
    child element at a time through try_read_element_from_xml(), so subclasses can add special handling for some
    elements and chain to super() for the rest.

    A complex property knows nothing about the object that holds it. The holder registers a callback with
    set_owner(), which is called with the property as argument on every change.
    """
    ELEMENT_NAME = None
    NAMESPACE = 't'
    FIELDS = ()

    _element_maps = {}
    _element_maps_lock = Lock()

    def __init__(self, **kwargs):
        super().__setattr__('_owner', None)
        super().__setattr__('_loading', False)
        for f in self.FIELDS:
            val = kwargs.pop(f.name, None)
            super().__setattr__(f.name, f.default if val is None else val)
            self._adopt(getattr(self, f.name))
        if kwargs:
            raise AttributeError("%s are invalid kwargs for this class" % ', '.join("'%s'" % k for k in kwargs))

    def __setattr__(self, key, value):
        if key.startswith('_'):
            return super().__setattr__(key, value)
        # Avoid silently accepting spelling errors to field names
        if not hasattr(self, key):
            raise AttributeError('%r is not a valid attribute. See %s.FIELDS for valid field names' % (
                key, self.__class__.__name__))
        super().__setattr__(key, value)
        self._adopt(value)
        if not self._loading:
            self.changed()

    def _set_quietly(self, key, value):
        # No name check and no change notification. Used for parsed values and non-field attributes.
        object.__setattr__(self, key, value)

    def set_owner(self, callback):
        self._owner = callback

    def changed(self):
        if self._owner is not None:
            self._owner(self)

    def _adopt(self, value):
        # Nested complex values report their changes through the property holding them
        if isinstance(value, (ComplexProperty, ComplexPropertyCollection)):
            value.set_owner(self._child_changed)

    def _child_changed(self, child):
        if not self._loading:
            self.changed()

    @classmethod
    def attribute_fields(cls):
        return tuple(f for f in cls.FIELDS if f.is_attribute)

    @classmethod
    def element_fields(cls):
        return tuple(f for f in cls.FIELDS if not f.is_attribute)

    @classmethod
    def field_for_element(cls, local_name):
        # Element name lookup table, built once per class
        with cls._element_maps_lock:
            element_map = cls._element_maps.get(cls)
            if element_map is None:
                element_map = {f.element_name: f for f in cls.element_fields()}
                cls._element_maps[cls] = element_map
        return element_map.get(local_name)

    def load_from_xml(self, reader):
        self._loading = True
        try:
            self.read_attributes_from_xml(reader)
            self.read_text_value_from_xml(reader)
            for child in reader.children():
                if not self.try_read_element_from_xml(child):
                    log.debug('Skipping unknown element %s in %s', child.local_name, self.__class__.__name__)
        finally:
            self._loading = False

    def read_attributes_from_xml(self, reader):
        for f in self.attribute_fields():
            super().__setattr__(f.name, f.read_attribute(reader))

    def read_text_value_from_xml(self, reader):
        pass

    def try_read_element_from_xml(self, reader):
        f = self.field_for_element(reader.local_name)
        if f is None:
            return False
        value = f.read(reader, current=getattr(self, f.name))
        super().__setattr__(f.name, value)
        self._adopt(value)
        return True

    def write_to_xml(self, writer, element_name=None, namespace=None):
        writer.start('%s:%s' % (namespace or self.NAMESPACE, element_name or self.ELEMENT_NAME))
        self.write_attributes_to_xml(writer)
        self.write_elements_to_xml(writer)
        writer.end()

    def write_attributes_to_xml(self, writer):
        for f in self.attribute_fields():
            if not f.supports_version(writer.version):
                continue
            value = getattr(self, f.name)
            if value is not None:
                f.write(writer, value)

    def write_elements_to_xml(self, writer):
        # WARNING: The order of XML elements is important. Exchange validates requests against its schema.
        for f in self.element_fields():
            if not f.supports_version(writer.version):
                continue
            value = getattr(self, f.name)
            if value is None or (f.is_list and not len(value)):
                continue
            f.write(writer, value)

    def validate(self):
        self.internal_validate()

    def internal_validate(self):
        for f in self.FIELDS:
            value = getattr(self, f.name)
            if value is None:
                if f.is_required:
                    raise ServiceValidationException("'%s' is required on %s" % (f.name, self.__class__.__name__))
                continue
            if isinstance(value, (ComplexProperty, ComplexPropertyCollection)):
                value.validate()

    def is_same(self, other):
        if other is None or type(self) is not type(other):
            return False
        return all(values_are_same(getattr(self, f.name), getattr(other, f.name)) for f in self.FIELDS)

    def __repr__(self):
        return self.__class__.__name__ + '(%s)' % ', '.join(
            '%s=%r' % (f.name, getattr(self, f.name)) for f in self.FIELDS if getattr(self, f.name) is not None
        )


class ComplexPropertyCollection:
    """A list of complex properties of one type, with a change log of added, removed and modified items.

    Additions and removals are logged as they happen. Removing an item that was added earlier does not cancel out the
    addition, and adding a removed item back does not cancel out the removal.
    """

    def __init__(self, item_cls, item_element_name=None):
        self.item_cls = item_cls
        self.item_element_name = item_element_name or item_cls.ELEMENT_NAME
        self.items = []
        self.added_items = []
        self.removed_items = []
        self.modified_items = []
        self._owner = None

    def set_owner(self, callback):
        self._owner = callback

    def changed(self):
        if self._owner is not None:
            self._owner(self)

    def _item_changed(self, item):
        if item not in self.added_items and item not in self.modified_items:
            self.modified_items.append(item)
            self.changed()

    def _internal_add(self, item, loading=False):
        if any(i is item for i in self.items):
            return
        self.items.append(item)
        if not loading:
            self.added_items.append(item)
        item.set_owner(self._item_changed)
        self.changed()

    def add(self, item):
        if not isinstance(item, self.item_cls):
            raise TypeError('%r must be of type %s' % (item, self.item_cls))
        self._internal_add(item)

    def remove(self, item):
        for i, existing in enumerate(self.items):
            if existing is item:
                break
        else:
            return False
        del self.items[i]
        item.set_owner(None)
        self.removed_items.append(item)
        if item in self.modified_items:
            self.modified_items.remove(item)
        self.changed()
        return True

    def clear(self):
        while self.items:
            self.remove(self.items[0])

    def clear_change_log(self):
        self.added_items = []
        self.removed_items = []
        self.modified_items = []

    @property
    def has_only_additions(self):
        return bool(self.added_items) and not self.removed_items and not self.modified_items

    def create_item(self, local_name):
        if local_name == self.item_element_name:
            return self.item_cls()
        return None

    def load_from_xml(self, reader):
        for child in reader.children():
            item = self.create_item(child.local_name)
            if item is None:
                log.debug('Skipping unknown element %s in collection of %s', child.local_name,
                          self.item_cls.__name__)
                continue
            item.load_from_xml(child)
            self._internal_add(item, loading=True)

    def write_to_xml(self, writer, element_name=None, namespace='t'):
        if not self.items:
            return
        writer.start('%s:%s' % (namespace, element_name))
        for item in self.items:
            item.write_to_xml(writer, element_name=self.item_element_name)
        writer.end()

    def validate(self):
        for item in self.items:
            item.validate()

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def __contains__(self, item):
        return any(i is item for i in self.items)

    def __repr__(self):
        return self.__class__.__name__ + '(%r)' % self.items


class ServiceId(ComplexProperty):
    """Base class for the Id/ChangeKey pair of items and folders"""
    ID_ATTR = 'Id'
    CHANGEKEY_ATTR = 'ChangeKey'
    FIELDS = (
        TextField('id', field_uri=ID_ATTR, is_attribute=True, is_required=True),
        TextField('changekey', field_uri=CHANGEKEY_ATTR, is_attribute=True),
    )

    def __init__(self, *args, **kwargs):
        if args:
            # Allow to set attributes without keyword
            kwargs.update(zip(('id', 'changekey'), args))
        super().__init__(**kwargs)

    @property
    def is_valid(self):
        return bool(self.id)

    def __eq__(self, other):
        if not isinstance(other, ServiceId):
            return NotImplemented
        return self.id == other.id and self.changekey == other.changekey

    def __hash__(self):
        return hash((self.id, self.changekey))


class ItemId(ServiceId):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/itemid"""
    ELEMENT_NAME = 'ItemId'


class FolderId(ServiceId):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/folderid"""
    ELEMENT_NAME = 'FolderId'


class ParentFolderId(ServiceId):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/parentfolderid"""
    ELEMENT_NAME = 'ParentFolderId'


class DistinguishedFolderId(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/distinguishedfolderid"""
    ELEMENT_NAME = 'DistinguishedFolderId'

    FIELDS = (
        TextField('id', field_uri='Id', is_attribute=True, is_required=True),
        TextField('changekey', field_uri='ChangeKey', is_attribute=True),
    )

    def __init__(self, *args, **kwargs):
        if args:
            kwargs.update(zip(('id', 'changekey'), args))
        super().__init__(**kwargs)


class Body(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/body"""
    ELEMENT_NAME = 'Body'

    FIELDS = (
        ChoiceField('body_type', field_uri='BodyType', is_attribute=True, choices=('Text', 'HTML'), default='Text'),
        BooleanField('is_truncated', field_uri='IsTruncated', is_attribute=True),
    )

    def __init__(self, value=None, **kwargs):
        self._set_quietly('value', value)
        super().__init__(**kwargs)

    def read_text_value_from_xml(self, reader):
        self._set_quietly('value', reader.read_value())

    def write_elements_to_xml(self, writer):
        if self.value is not None:
            writer.current.text = self.value

    def is_same(self, other):
        return super().is_same(other) and self.value == other.value


class HTMLBody(Body):
    def __init__(self, value=None, **kwargs):
        kwargs.setdefault('body_type', 'HTML')
        super().__init__(value=value, **kwargs)


class InternetMessageHeader(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/internetmessageheader"""
    ELEMENT_NAME = 'InternetMessageHeader'

    FIELDS = (
        TextField('name', field_uri='HeaderName', is_attribute=True),
    )

    def __init__(self, value=None, **kwargs):
        self._set_quietly('value', value)
        super().__init__(**kwargs)

    def read_text_value_from_xml(self, reader):
        self._set_quietly('value', reader.read_value())

    def write_elements_to_xml(self, writer):
        if self.value is not None:
            writer.current.text = self.value


class Mailbox(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/mailbox"""
    ELEMENT_NAME = 'Mailbox'

    FIELDS = (
        TextField('name', field_uri='Name'),
        TextField('email_address', field_uri='EmailAddress'),
        ChoiceField('routing_type', field_uri='RoutingType', choices=ROUTING_TYPE_CHOICES),
        ChoiceField('mailbox_type', field_uri='MailboxType', choices=MAILBOX_TYPE_CHOICES),
        EWSElementField('item_id', value_cls=ItemId, field_uri='ItemId'),
    )

    def internal_validate(self):
        super().internal_validate()
        if not self.email_address and not self.item_id:
            # See "Remarks" section of
            # https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/mailbox
            raise ServiceValidationException("Mailbox must have either 'email_address' or 'item_id' set")


class Attendee(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/attendee"""
    ELEMENT_NAME = 'Attendee'

    FIELDS = (
        EWSElementField('mailbox', value_cls=Mailbox, field_uri='Mailbox', is_required=True),
        ChoiceField('response_type', field_uri='ResponseType', choices=RESPONSE_TYPE_CHOICES),
        DateTimeField('last_response_time', field_uri='LastResponseTime'),
    )


class UserId(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/userid"""
    ELEMENT_NAME = 'UserId'

    FIELDS = (
        TextField('sid', field_uri='SID'),
        TextField('primary_smtp_address', field_uri='PrimarySmtpAddress'),
        TextField('display_name', field_uri='DisplayName'),
        ChoiceField('distinguished_user', field_uri='DistinguishedUser', choices=('Default', 'Anonymous')),
        TextField('external_user_identity', field_uri='ExternalUserIdentity'),
    )


class CompleteName(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/completename"""
    ELEMENT_NAME = 'CompleteName'

    FIELDS = (
        TextField('title', field_uri='Title'),
        TextField('first_name', field_uri='FirstName'),
        TextField('middle_name', field_uri='MiddleName'),
        TextField('last_name', field_uri='LastName'),
        TextField('suffix', field_uri='Suffix'),
        TextField('initials', field_uri='Initials'),
        TextField('full_name', field_uri='FullName'),
        TextField('nickname', field_uri='Nickname'),
    )


class EffectiveRights(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/effectiverights"""
    ELEMENT_NAME = 'EffectiveRights'

    FIELDS = (
        BooleanField('create_associated', field_uri='CreateAssociated', default=False),
        BooleanField('create_contents', field_uri='CreateContents', default=False),
        BooleanField('create_hierarchy', field_uri='CreateHierarchy', default=False),
        BooleanField('delete', field_uri='Delete', default=False),
        BooleanField('modify', field_uri='Modify', default=False),
        BooleanField('read', field_uri='Read', default=False),
        BooleanField('view_private_items', field_uri='ViewPrivateItems', default=False),
    )

    def __contains__(self, item):
        return getattr(self, item, False)


class Flag(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/flag"""
    ELEMENT_NAME = 'Flag'

    FIELDS = (
        ChoiceField('flag_status', field_uri='FlagStatus', choices=('NotFlagged', 'Flagged', 'Complete'),
                    is_required=True),
        DateTimeField('start_date', field_uri='StartDate'),
        DateTimeField('due_date', field_uri='DueDate'),
        DateTimeField('complete_date', field_uri='CompleteDate'),
    )

    def internal_validate(self):
        super().internal_validate()
        if self.flag_status == 'Flagged' and (self.start_date is None) != (self.due_date is None):
            raise ServiceValidationException("'start_date' and 'due_date' must both be set, or neither")
        if self.flag_status == 'Complete' and self.complete_date is None:
            raise ServiceValidationException("'complete_date' is required when the flag is complete")
