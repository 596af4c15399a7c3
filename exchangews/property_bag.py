"""
The property bag holds the field values of one service object, and remembers what happened to them since they were
last loaded or saved. The change log is what makes it possible to send minimal UpdateItem requests: only the fields
that were added, modified or deleted are sent.

Values that are complex properties are wired to the bag with an explicit callback, so changes deep inside e.g. a
recurrence pattern mark the field holding the pattern as modified.
"""
from functools import partial
import logging

from .errors import ServiceVersionException, PropertyNotLoaded, PropertyReadOnly, PropertyCannotBeDeleted, \
    PropertyCannotBeUpdated, ServiceObjectPropertyException, ServiceValidationException, ServiceLocalException
from .fields import CAN_SET, CAN_UPDATE, CAN_DELETE, AUTO_INSTANTIATE_ON_READ
from .properties import ComplexProperty, ComplexPropertyCollection

log = logging.getLogger(__name__)


def _is_complex(value):
    return isinstance(value, (ComplexProperty, ComplexPropertyCollection))


class PropertyBag:
    def __init__(self, owner):
        self.owner = owner
        self._values = {}
        self._loaded = []
        self._added = []
        self._modified = []
        self._deleted = {}  # Field -> value at the time of deletion
        self._requested_property_set = None
        self._only_summary = False
        self._loading = False
        self._is_dirty = False

    @property
    def version(self):
        return self.owner.version

    @property
    def schema(self):
        return self.owner.schema

    @property
    def loaded_properties(self):
        return tuple(self._loaded)

    @property
    def added_properties(self):
        return tuple(self._added)

    @property
    def modified_properties(self):
        return tuple(self._modified)

    @property
    def deleted_properties(self):
        return tuple(self._deleted)

    @property
    def is_dirty(self):
        return bool(self._added or self._modified or self._deleted) or self._is_dirty

    def is_loaded(self, field):
        return field in self._loaded

    def is_property_updated(self, field):
        return field in self._added or field in self._modified

    def _is_requested(self, field):
        property_set = self._requested_property_set
        if property_set is None:
            return False
        if property_set.is_first_class:
            first_class = self.schema.first_class_summary_properties if self._only_summary \
                else self.schema.first_class_properties
            if field in first_class:
                return True
        return field in property_set.additional_properties

    def _check_version(self, field):
        if not field.supports_version(self.version):
            raise ServiceVersionException(
                "Property '%s' is only valid for Exchange %s or later (server has %s)" % (
                    field.name, field.supported_from, self.version))

    def __contains__(self, field):
        return field in self._values

    def get(self, field):
        self._check_version(field)
        if field in self._values:
            return self._values[field]
        if field.has_flag(AUTO_INSTANTIATE_ON_READ, self.version):
            value = field.create_instance()
            self._wire(field, value)
            self._values[field] = value
            return value
        if field is self.owner.ID_FIELD:
            # Reading the id is always allowed. New objects don't have one.
            return None
        if not self.is_loaded(field) and not self._is_requested(field):
            raise PropertyNotLoaded(
                "You must load or assign property '%s' before you can read its value" % field.name, field=field)
        if not field.is_nullable:
            raise ServiceObjectPropertyException("Value property '%s' has not been assigned" % field.name,
                                                 field=field)
        return None

    def try_get(self, field):
        try:
            return True, self.get(field)
        except ServiceLocalException:
            return False, None

    def set(self, field, value):
        self._check_version(field)
        if not self._loading:
            if self.owner.is_new:
                if not field.has_flag(CAN_SET, self.version):
                    raise PropertyReadOnly("Property '%s' is read-only" % field.name, field=field)
            else:
                if value is None and not field.has_flag(CAN_DELETE, self.version):
                    raise PropertyCannotBeDeleted("Property '%s' cannot be deleted" % field.name, field=field)
                if not field.has_flag(CAN_UPDATE, self.version):
                    raise PropertyCannotBeUpdated("Property '%s' cannot be updated" % field.name, field=field)
            value = field.clean(value, version=self.version)
        if value is None:
            self._delete_property(field)
        else:
            old_value = self._values.get(field)
            if _is_complex(old_value):
                old_value.set_owner(None)
            if field in self._deleted:
                del self._deleted[field]
                self._add_to_change_list(field, self._modified)
            elif field not in self._values:
                self._add_to_change_list(field, self._added)
            elif field not in self._added:
                # Setting a value twice still counts as a modification. There is no equality check.
                self._add_to_change_list(field, self._modified)
            self._wire(field, value)
            self._values[field] = value
        self.changed()

    @staticmethod
    def _add_to_change_list(field, change_list):
        if field not in change_list:
            change_list.append(field)

    def _delete_property(self, field):
        if field in self._deleted:
            return
        old_value = self._values.pop(field, None)
        if field in self._modified:
            self._modified.remove(field)
        if field in self._added:
            self._added.remove(field)
        self._deleted[field] = old_value
        if _is_complex(old_value):
            old_value.set_owner(None)

    def _wire(self, field, value):
        if _is_complex(value):
            value.set_owner(partial(self._property_changed, field))

    def _property_changed(self, field, complex_property):
        # Called by complex properties when one of their fields changes
        if field not in self._deleted and field not in self._added:
            self._add_to_change_list(field, self._modified)
        self.changed()

    def changed(self):
        self._is_dirty = True
        self.owner.changed()

    def clear(self):
        self.clear_change_log()
        for value in self._values.values():
            if _is_complex(value):
                value.set_owner(None)
        self._values = {}
        self._loaded = []
        self._requested_property_set = None

    def clear_change_log(self):
        self._deleted = {}
        self._modified = []
        self._added = []
        for value in self._values.values():
            if isinstance(value, ComplexPropertyCollection):
                value.clear_change_log()
        self._is_dirty = False

    def is_update_call_necessary(self):
        for field in self._added + self._modified + list(self._deleted):
            if field.has_flag(CAN_UPDATE, self.version):
                return True
        return False

    def validate(self):
        for field in self._added + self._modified:
            value = self._values.get(field)
            if value is None or not hasattr(value, 'validate'):
                continue
            try:
                value.validate()
            except ServiceValidationException as e:
                raise ServiceValidationException("Validation failed for property '%s': %s" % (field.name, e.value))
        if self.owner.is_new:
            for field in self.schema.required_properties:
                if field not in self._values and field.supports_version(self.version):
                    raise ServiceValidationException("Property '%s' is required" % field.name)

    def load_from_xml(self, reader, clear, requested_property_set=None, summary_only=False):
        """Loads field values from the children of the element that 'reader' points to. If 'clear' is False,
        existing values are kept and values in the XML replace them.
        """
        if clear:
            self.clear()
        if clear or requested_property_set is not None:
            # A merged server response doesn't change what was requested when the object was loaded
            self._requested_property_set = requested_property_set
            self._only_summary = summary_only
        self._loading = True
        try:
            for child in reader.children():
                field = self.schema.get(child.local_name)
                if field is None:
                    log.debug('Skipping unknown element %s on %s', child.local_name, self.owner.__class__.__name__)
                    continue
                value = field.read(child, current=self._values.get(field))
                self._add_to_change_list(field, self._loaded)
                if value is None:
                    old_value = self._values.pop(field, None)
                    if _is_complex(old_value):
                        old_value.set_owner(None)
                    continue
                self._wire(field, value)
                self._values[field] = value
        finally:
            self._loading = False
        self.clear_change_log()

    def write_to_xml(self, writer):
        writer.start(self.owner.request_tag())
        for field in self.schema:
            if field not in self._values:
                continue
            if not field.supports_version(writer.version) or not field.has_flag(CAN_SET, writer.version):
                continue
            field.write(writer, self._values[field])
        writer.end()

    def write_to_xml_for_update(self, writer):
        owner = self.owner
        writer.start('t:%s' % owner.CHANGE_ELEMENT_NAME)
        owner.get_id().write_to_xml(writer)
        writer.start('t:Updates')
        for field in self._added + self._modified:
            self._write_set_update(writer, field)
        for field in self._deleted:
            self._write_delete_update(writer, field)
        writer.end()
        writer.end()

    def _write_set_update(self, writer, field):
        owner = self.owner
        value = self._values.get(field)
        if value is None:
            self._write_delete_update(writer, field)
            return
        if isinstance(value, ComplexPropertyCollection):
            if not len(value):
                # An empty collection is sent as a deletion
                self._write_delete_update(writer, field)
                return
            if value.has_only_additions and owner.APPEND_FIELD_ELEMENT_NAME:
                writer.start('t:%s' % owner.APPEND_FIELD_ELEMENT_NAME)
                field.write_uri(writer)
                writer.start(owner.request_tag())
                field.write_items(writer, value.added_items)
                writer.end()
                writer.end()
                return
        writer.start('t:%s' % owner.SET_FIELD_ELEMENT_NAME)
        field.write_uri(writer)
        writer.start(owner.request_tag())
        field.write(writer, value)
        writer.end()
        writer.end()

    def _write_delete_update(self, writer, field):
        writer.start('t:%s' % self.owner.DELETE_FIELD_ELEMENT_NAME)
        field.write_uri(writer)
        writer.end()
