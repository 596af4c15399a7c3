"""
Schemas describe the fields of a service object class. A schema is built once per class from the FIELDS tuple of the
class, and is shared by all instances.

Classes whose fields should be searchable by FieldURI are registered with register_schema_class(). The items and
folders packages register their classes on import.
"""
import logging
from threading import Lock

from .fields import Field, CAN_FIND, MUST_BE_EXPLICITLY_LOADED

log = logging.getLogger(__name__)


class ServiceObjectSchema:
    """An ordered collection of fields with lookup by XML element name and by Python name"""

    def __init__(self, fields):
        self.fields = tuple(fields)
        self._by_element_name = {}
        self._by_name = {}
        for f in self.fields:
            if not isinstance(f, Field):
                raise ValueError('%r must be a Field instance' % f)
            if f.element_name in self._by_element_name:
                raise ValueError("Element name '%s' is used by both '%s' and '%s'" % (
                    f.element_name, self._by_element_name[f.element_name].name, f.name))
            if f.name in self._by_name:
                raise ValueError("Field name '%s' is defined twice" % f.name)
            self._by_element_name[f.element_name] = f
            self._by_name[f.name] = f
        self.first_class_properties = tuple(f for f in self.fields if not f.has_flag(MUST_BE_EXPLICITLY_LOADED))
        self.first_class_summary_properties = tuple(f for f in self.first_class_properties if f.has_flag(CAN_FIND))
        self.required_properties = tuple(f for f in self.fields if f.is_required)

    def get(self, element_name):
        return self._by_element_name.get(element_name)

    def get_by_name(self, name):
        return self._by_name.get(name)

    def __contains__(self, field):
        return self._by_name.get(field.name) is field

    def __iter__(self):
        return iter(self.fields)

    def __len__(self):
        return len(self.fields)

    def __repr__(self):
        return self.__class__.__name__ + '(%s)' % ', '.join(f.name for f in self.fields)


_schemas = {}
_schemas_lock = Lock()


def schema_for(cls):
    """Returns the schema of a service object class, building it on first use"""
    schema = _schemas.get(cls)
    if schema is not None:
        return schema
    with _schemas_lock:
        schema = _schemas.get(cls)
        if schema is None:
            log.debug('Building schema for %s', cls.__name__)
            schema = ServiceObjectSchema(cls.FIELDS)
            _schemas[cls] = schema
    return schema


_registered_classes = []
_uri_index = None
_uri_index_lock = Lock()


def register_schema_class(cls):
    global _uri_index
    with _uri_index_lock:
        if cls not in _registered_classes:
            _registered_classes.append(cls)
            _uri_index = None
    return cls


def _build_uri_index():
    index = {}
    for cls in _registered_classes:
        for f in schema_for(cls):
            if not f.field_uri:
                continue
            existing = index.get(f.field_uri)
            if existing is not None and existing is not f:
                raise ValueError("FieldURI '%s' is used by two different fields (%r and %r)" % (
                    f.field_uri, existing, f))
            index[f.field_uri] = f
    return index


def find_property_definition(uri):
    """Returns the field with the given FieldURI, e.g. 'item:Subject'. Raises KeyError for unknown URIs."""
    global _uri_index
    with _uri_index_lock:
        if _uri_index is None:
            _uri_index = _build_uri_index()
        index = _uri_index
    try:
        return index[uri]
    except KeyError:
        raise KeyError("Unknown FieldURI '%s'" % uri)
