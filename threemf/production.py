"""Attributes of the 3MF production extension: UUIDs and cross-file paths."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, List, Optional, Union

from threemf.materials_codec import CORE_NAMESPACE, ParseAttrError
from threemf.validation import MissingFieldError, ValidationError
from threemf.xmlprinter import Attr, Name

NAMESPACE = "http://schemas.microsoft.com/3dmanufacturing/production/2015/06"
DEFAULT_PREFIX = "p"
DEFAULT_MODEL_PATH = "/3D/3dmodel.model"

ATTR_UUID = "UUID"
ATTR_PATH = "path"

ERR_UUID = ValidationError(
    "UUID MUST be any of the four UUID variants described in IETF RFC 4122"
)
ERR_PROD_REF_IN_NON_ROOT = ValidationError(
    "non-root model file components MUST only reference objects in the same model file"
)

_UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


def is_valid_uuid(value: str) -> bool:
    """Tell whether ``value`` is a UUID in its canonical hyphenated form."""
    return _UUID_PATTERN.fullmatch(value) is not None


def _checked_uuid(name: str, value: str) -> str:
    if not is_valid_uuid(value):
        raise ParseAttrError(name, True)
    return value


def _uuid_attr(value: str) -> Attr:
    return Attr(Name(NAMESPACE, ATTR_UUID), value)


def _path_attr(value: str) -> Attr:
    return Attr(Name(NAMESPACE, ATTR_PATH), value)


@dataclass
class BuildAttr:
    """A UUID on the build element so a package can be tracked across uses."""

    namespace: ClassVar[str] = NAMESPACE

    uuid: str = ""

    def unmarshal_attr(self, name: str, value: str) -> None:
        """Read one attribute; raise ParseAttrError for a malformed UUID."""
        if name == ATTR_UUID:
            self.uuid = _checked_uuid(name, value)

    def marshal(self) -> List[Attr]:
        """Return the attributes to write on the build element."""
        return [_uuid_attr(self.uuid)]


@dataclass
class ObjectAttr:
    """A UUID on an object for traceability across packages."""

    namespace: ClassVar[str] = NAMESPACE

    uuid: str = ""

    def unmarshal_attr(self, name: str, value: str) -> None:
        """Read one attribute; raise ParseAttrError for a malformed UUID."""
        if name == ATTR_UUID:
            self.uuid = _checked_uuid(name, value)

    def marshal(self) -> List[Attr]:
        """Return the attributes to write on the object element."""
        return [_uuid_attr(self.uuid)]


@dataclass
class ItemAttr:
    """A UUID and an optional model path on a build item."""

    namespace: ClassVar[str] = NAMESPACE

    uuid: str = ""
    path: str = ""

    def object_path(self) -> str:
        """Return the path of the model file holding the referenced object."""
        return self.path

    def unmarshal_attr(self, name: str, value: str) -> None:
        """Read one attribute; raise ParseAttrError for a malformed UUID."""
        if name == ATTR_UUID:
            self.uuid = _checked_uuid(name, value)
        elif name == ATTR_PATH:
            self.path = value

    def marshal(self) -> List[Attr]:
        """Return the attributes to write on the item element."""
        attrs = [_path_attr(self.path)] if self.path else []
        attrs.append(_uuid_attr(self.uuid))
        return attrs


@dataclass
class ComponentAttr:
    """A UUID and an optional model path on a component."""

    namespace: ClassVar[str] = NAMESPACE

    uuid: str = ""
    path: str = ""

    def object_path(self) -> str:
        """Return the path of the model file holding the referenced object."""
        return self.path

    def unmarshal_attr(self, name: str, value: str) -> None:
        """Read one attribute; raise ParseAttrError for a malformed UUID."""
        if name == ATTR_UUID:
            self.uuid = _checked_uuid(name, value)
        elif name == ATTR_PATH:
            self.path = value

    def marshal(self) -> List[Attr]:
        """Return the attributes to write on the component element."""
        attrs = [_path_attr(self.path)] if self.path else []
        attrs.append(_uuid_attr(self.uuid))
        return attrs


AttrGroup = Union[BuildAttr, ObjectAttr, ItemAttr, ComponentAttr]

_GROUPS = {
    "build": BuildAttr,
    "item": ItemAttr,
    "object": ObjectAttr,
    "component": ComponentAttr,
}


def new_attr_group(parent: Name) -> Optional[AttrGroup]:
    """Return an empty attribute group for a core element, or None."""
    if parent.space != CORE_NAMESPACE:
        return None
    kind = _GROUPS.get(parent.local)
    return kind() if kind is not None else None


def validate_path_uuid(
    attr: Union[ItemAttr, ComponentAttr],
    path: str,
    root_path: str = DEFAULT_MODEL_PATH,
) -> List[ValidationError]:
    """Return the problems in an item or component found in model file ``path``."""
    errors: List[ValidationError] = []
    if not attr.uuid:
        errors.append(MissingFieldError(ATTR_UUID))
    elif not is_valid_uuid(attr.uuid):
        errors.append(ERR_UUID)
    if attr.object_path() and path not in ("", root_path):
        errors.append(ERR_PROD_REF_IN_NON_ROOT)
    return errors