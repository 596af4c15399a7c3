"""
Cursor-style helpers over lxml elements. EwsXmlReader wraps one parsed element and offers typed access to its text,
attributes and children. EwsXmlWriter builds a tree of RestrictedElement objects by keeping a stack of open elements.

Both carry the negotiated server version, so property definitions can decide what to read and write.
"""
from collections import OrderedDict
import logging

from .errors import MalformedResponseError
from .util import create_element, value_to_xml_text, xml_text_to_value, xml_to_str, ns_translation, TNS, XSI

log = logging.getLogger(__name__)


def _split_tag(tag):
    # '{ns}Name' -> ('ns', 'Name')
    if tag.startswith('{'):
        ns, name = tag[1:].split('}', 1)
        return ns, name
    return None, tag


def _qualify(name, default_ns=TNS):
    # Accepts 't:Name', '{ns}Name' or a bare 'Name'
    if name.startswith('{'):
        return name
    if ':' in name:
        prefix, local = name.split(':', 1)
        return '{%s}%s' % (ns_translation[prefix], local)
    if default_ns is None:
        return name
    return '{%s}%s' % (default_ns, name)


class EwsXmlReader:
    """A read cursor positioned on one element"""

    __slots__ = ('elem', 'version')

    def __init__(self, elem, version=None):
        self.elem = elem
        self.version = version

    @property
    def local_name(self):
        return _split_tag(self.elem.tag)[1]

    @property
    def namespace(self):
        return _split_tag(self.elem.tag)[0]

    @property
    def has_attributes(self):
        return len(self.elem.attrib) > 0

    def is_element(self, local_name, namespace=TNS):
        ns, name = _split_tag(self.elem.tag)
        return name == local_name and (namespace is None or ns == namespace)

    def ensure_element(self, local_name, namespace=TNS):
        if not self.is_element(local_name, namespace):
            raise MalformedResponseError('Expected element {%s}%s, got %s' % (namespace, local_name, self.elem.tag))

    def read_attribute(self, name, value_cls=str):
        val = self.elem.get(name)
        if val is None:
            return None
        return self._convert(val, value_cls)

    def read_xsi_type(self):
        # The type may be prefixed, e.g. 't:StringInsightValue'
        val = self.elem.get('{%s}type' % XSI)
        if val is None:
            return None
        return val.split(':')[-1]

    def read_value(self, value_cls=str):
        if self.elem.text is None:
            return None
        return self._convert(self.elem.text, value_cls)

    def read_enum(self, choices):
        val = self.read_value()
        if val is None:
            return None
        if val not in choices:
            raise MalformedResponseError('Value %r of element %s is not one of %s' % (val, self.local_name, choices))
        return val

    def read_element_value(self, local_name, value_cls=str, namespace=TNS):
        child = self.find(local_name, namespace=namespace)
        if child is None:
            return None
        return child.read_value(value_cls)

    def _convert(self, val, value_cls):
        try:
            return xml_text_to_value(val, value_cls)
        except (ValueError, ArithmeticError) as e:
            raise MalformedResponseError('Invalid %s value %r in element %s: %s' % (
                value_cls.__name__, val, self.local_name, e))

    def children(self):
        # Comments and processing instructions are skipped
        for child in self.elem:
            if not isinstance(child.tag, str):
                continue
            yield self.__class__(child, version=self.version)

    def find(self, local_name, namespace=TNS):
        child = self.elem.find(_qualify(local_name, namespace))
        if child is None:
            return None
        return self.__class__(child, version=self.version)

    def findall(self, local_name, namespace=TNS):
        return [self.__class__(c, version=self.version) for c in self.elem.findall(_qualify(local_name, namespace))]

    def __repr__(self):
        return self.__class__.__name__ + '(%s)' % xml_to_str(self.elem)


class EwsXmlWriter:
    """A write cursor that builds an element tree. Use start()/end() for nested elements and element() for leaves."""

    def __init__(self, version=None, root=None):
        self.version = version
        self._stack = [] if root is None else [root]
        self._root = root
        self.writing_for_update = False

    @property
    def root(self):
        return self._root

    @property
    def current(self):
        if not self._stack:
            raise ValueError('No open element')
        return self._stack[-1]

    def start(self, tag, attrs=None, nsmap=None):
        if attrs:
            attrs = OrderedDict((k, value_to_xml_text(v)) for k, v in attrs.items())
        elem = create_element(tag, attrs, nsmap=nsmap)
        if self._stack:
            self._stack[-1].append(elem)
        elif self._root is None:
            self._root = elem
        else:
            raise ValueError('Document already has a root element')
        self._stack.append(elem)
        return elem

    def end(self):
        return self._stack.pop()

    def element(self, tag, value=None, attrs=None):
        self.start(tag, attrs)
        if value is not None:
            self.current.text = value_to_xml_text(value)
        return self.end()

    def attribute(self, name, value):
        if ':' in name:
            name = _qualify(name)
        self.current.set(name, value_to_xml_text(value))

    def append(self, elem):
        self.current.append(elem)

    def to_string(self):
        return xml_to_str(self._root)

    def to_bytes(self, encoding='utf-8'):
        """The document with an XML declaration, ready to be posted"""
        return xml_to_str(self._root, encoding=encoding, xml_declaration=True)
