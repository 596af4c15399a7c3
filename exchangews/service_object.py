"""
Service objects are the items and folders of a mailbox. A service object owns exactly one property bag and exposes the
fields of its schema as plain Python attributes:

    item = EmailMessage(account=account, subject='Hello')
    item.subject = 'Hello again'  # Recorded in the change log
    item.save()

The concrete classes in the 'items' and 'folders' packages only supply the wrapper element names and the services to
call. Everything else is shared.
"""
import logging

from .errors import InvalidOperation, ServiceLocalException, ServiceVersionException
from .fields import Field
from .property_bag import PropertyBag
from .schema import schema_for

log = logging.getLogger(__name__)

# Shape enums. See https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/baseshape
ID_ONLY = 'IdOnly'
DEFAULT = 'Default'
# AllProperties doesn't actually get all properties, just the "first-class" ones. See
# https://docs.microsoft.com/en-us/exchange/client-developer/exchange-web-services/email-properties-and-elements-in-ews-in-exchange
ALL_PROPERTIES = 'AllProperties'
SHAPE_CHOICES = (ID_ONLY, DEFAULT, ALL_PROPERTIES)


class PropertySet:
    """The properties to fetch when loading a service object: a base shape plus any number of extra fields.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/itemshape
    """
    ID_ONLY = None
    FIRST_CLASS_PROPERTIES = None

    def __init__(self, base_shape=ALL_PROPERTIES, additional_properties=None):
        if base_shape not in SHAPE_CHOICES:
            raise ValueError("'base_shape' %r must be one of %s" % (base_shape, SHAPE_CHOICES))
        additional_properties = tuple(additional_properties or ())
        for f in additional_properties:
            if not isinstance(f, Field):
                raise ValueError("'additional_properties' entry %r must be a Field instance" % f)
            if not f.field_uri:
                raise ValueError("Field '%s' has no FieldURI and cannot be requested" % f.name)
        self.base_shape = base_shape
        self.additional_properties = additional_properties

    @property
    def is_first_class(self):
        return self.base_shape != ID_ONLY

    def validate(self, version):
        for f in self.additional_properties:
            if not f.supports_version(version):
                raise ServiceVersionException(
                    "Property '%s' is only valid for Exchange %s or later" % (f.name, f.supported_from))

    def write_to_xml(self, writer, shape_element):
        writer.start(shape_element)
        writer.element('t:BaseShape', self.base_shape)
        if self.additional_properties:
            writer.start('t:AdditionalProperties')
            for f in self.additional_properties:
                f.write_uri(writer)
            writer.end()
        writer.end()

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r)' % (self.base_shape, [f.name for f in self.additional_properties])


PropertySet.ID_ONLY = PropertySet(base_shape=ID_ONLY)
PropertySet.FIRST_CLASS_PROPERTIES = PropertySet(base_shape=ALL_PROPERTIES)


class ServiceObject:
    """Base class for items and folders.

    Subclasses set ELEMENT_NAME, ID_FIELD and FIELDS, the wrapper element names used in update requests, and implement
    _get(), _create(), _update() and _delete() with the matching services.
    """
    ELEMENT_NAME = None
    ID_FIELD = None
    FIELDS = ()

    CHANGE_ELEMENT_NAME = None
    SET_FIELD_ELEMENT_NAME = None
    DELETE_FIELD_ELEMENT_NAME = None
    APPEND_FIELD_ELEMENT_NAME = None

    def __init__(self, account=None, **kwargs):
        self._property_bag = PropertyBag(owner=self)
        self.account = account
        # Callbacks that are called with this object as argument whenever a property changes
        self.on_change = []
        invalid = [k for k in kwargs if self.schema.get_by_name(k) is None]
        if invalid:
            raise AttributeError("%s are invalid kwargs for this class" % ', '.join("'%s'" % k for k in invalid))
        for k, v in kwargs.items():
            setattr(self, k, v)

    def __getattr__(self, name):
        # Only called when normal attribute lookup fails
        if name.startswith('_'):
            raise AttributeError(name)
        field = schema_for(self.__class__).get_by_name(name)
        if field is None:
            raise AttributeError("'%s' object has no attribute '%s'" % (self.__class__.__name__, name))
        return self._property_bag.get(field)

    def __setattr__(self, name, value):
        if not name.startswith('_'):
            field = schema_for(self.__class__).get_by_name(name)
            if field is not None:
                self._property_bag.set(field, value)
                return
        super().__setattr__(name, value)

    def __delattr__(self, name):
        field = schema_for(self.__class__).get_by_name(name)
        if field is None:
            super().__delattr__(name)
            return
        self._property_bag.set(field, None)

    @property
    def schema(self):
        return schema_for(self.__class__)

    @property
    def version(self):
        return self.account.version if self.account else None

    @property
    def property_bag(self):
        return self._property_bag

    def get_id(self):
        return self._property_bag.get(self.ID_FIELD)

    @property
    def is_new(self):
        service_id = self.get_id()
        return service_id is None or not service_id.is_valid

    @property
    def is_dirty(self):
        return self._property_bag.is_dirty

    @classmethod
    def request_tag(cls):
        return 't:%s' % cls.ELEMENT_NAME

    def changed(self):
        for callback in list(self.on_change):
            callback(self)

    def _resolve(self, field):
        if isinstance(field, Field):
            return field
        resolved = self.schema.get_by_name(field)
        if resolved is None:
            raise KeyError("'%s' is not a property of %s" % (field, self.__class__.__name__))
        return resolved

    def __getitem__(self, field):
        return self._property_bag.get(self._resolve(field))

    def try_get_property(self, field):
        """Returns a (found, value) tuple instead of raising when the property is not available"""
        return self._property_bag.try_get(self._resolve(field))

    @property
    def loaded_property_definitions(self):
        return self._property_bag.loaded_properties

    def validate(self):
        self._property_bag.validate()

    def load_from_xml(self, reader, clear, requested_property_set=None, summary_only=False):
        self._property_bag.load_from_xml(reader, clear=clear, requested_property_set=requested_property_set,
                                         summary_only=summary_only)

    def write_to_xml(self, writer):
        self._property_bag.write_to_xml(writer)

    def write_to_xml_for_update(self, writer):
        writer.writing_for_update = True
        try:
            self._property_bag.write_to_xml_for_update(writer)
        finally:
            writer.writing_for_update = False

    def clear_change_log(self):
        self._property_bag.clear_change_log()

    def _throw_if_new(self):
        if self.is_new:
            raise InvalidOperation("This operation can't be performed because this service object doesn't have an Id")

    def _throw_if_not_new(self):
        if not self.is_new:
            raise InvalidOperation(
                "This operation can't be performed because this service object already has an Id. To update this "
                "service object, use update() instead.")

    def _require_account(self):
        if self.account is None:
            raise ValueError('%s must have an account' % self.__class__.__name__)

    def _check_type(self, reader):
        if reader.local_name != self.ELEMENT_NAME:
            raise ServiceLocalException(
                'The type of the object in the store (%s) does not match that of the local object (%s)' % (
                    reader.local_name, self.ELEMENT_NAME))

    def _merge_response(self, reader):
        # Save and update responses only hold the server-assigned id. Merge it into the existing values.
        if reader is not None:
            self.load_from_xml(reader, clear=False)
        self.clear_change_log()

    def load(self, property_set=None):
        """Fetch the properties in 'property_set' from the server, replacing all values held locally"""
        self._throw_if_new()
        self._require_account()
        if property_set is None:
            property_set = PropertySet.FIRST_CLASS_PROPERTIES
        property_set.validate(self.version)
        reader = self._get(property_set=property_set)
        self._check_type(reader)
        self.load_from_xml(reader, clear=True, requested_property_set=property_set)
        return self

    def save(self, *args, **kwargs):
        self._throw_if_not_new()
        self._require_account()
        self.validate()
        self._merge_response(self._create(*args, **kwargs))
        return self

    def update(self, *args, **kwargs):
        self._throw_if_new()
        self._require_account()
        if not self._property_bag.is_update_call_necessary():
            log.debug('%s has no changes that can be sent to the server. Skipping update', self.__class__.__name__)
            return self
        self.validate()
        self._merge_response(self._update(*args, **kwargs))
        return self

    def delete(self, *args, **kwargs):
        self._throw_if_new()
        self._require_account()
        self._delete(*args, **kwargs)
        # A deleted object has no identity anymore and cannot be updated or deleted again
        self._property_bag.clear()

    def _get(self, property_set):
        raise NotImplementedError()

    def _create(self, *args, **kwargs):
        raise NotImplementedError()

    def _update(self, *args, **kwargs):
        raise NotImplementedError()

    def _delete(self, *args, **kwargs):
        raise NotImplementedError()

    @classmethod
    def from_xml(cls, reader, account, requested_property_set=None, summary_only=False):
        obj = cls(account=account)
        obj.load_from_xml(reader, clear=True, requested_property_set=requested_property_set,
                          summary_only=summary_only)
        return obj

    def __repr__(self):
        return self.__class__.__name__ + '(%s)' % ', '.join(
            '%s=%r' % (f.name, self._property_bag._values[f]) for f in self.schema if f in self._property_bag
        )
