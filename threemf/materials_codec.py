"""Reading and writing the XML elements of the materials extension."""

from __future__ import annotations

import io
import string
import struct
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from threemf.materials import (
    NAMESPACE,
    REL_TYPE_TEXTURE3D,
    RGBA,
    BlendMethod,
    ColorGroup,
    Composite,
    CompositeMaterials,
    Multi,
    MultiProperties,
    Texture2D,
    Texture2DGroup,
    TextureCoord,
    TextureFilter,
    TileStyle,
    parse_blend_method,
    parse_texture2d_type,
    parse_texture_filter,
    parse_tile_style,
)
from threemf.xmldecoder import Decoder
from threemf.xmlprinter import Attr, Name, Printer, StartElement

CORE_NAMESPACE = "http://schemas.microsoft.com/3dmanufacturing/core/2015/02"
DEFAULT_PRECISION = 6

Resource = Union[ColorGroup, Texture2DGroup, Texture2D, CompositeMaterials, MultiProperties]

_FLOAT32 = struct.Struct("<f")
_HEX = frozenset(string.hexdigits)
_MAX_UINT32 = 0xFFFFFFFF


class ParseAttrError(ValueError):
    """An attribute whose value could not be parsed."""

    def __init__(self, name: str, required: bool = True, xpath: str = "") -> None:
        kind = "required" if required else "optional"
        message = f"error parsing {kind} attribute {name}"
        super().__init__(f"XPath: {xpath}: {message}" if xpath else message)
        self.name = name
        self.required = required
        self.xpath = xpath

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParseAttrError):
            return NotImplemented
        return (self.name, self.required, self.xpath) == (
            other.name,
            other.required,
            other.xpath,
        )

    def __hash__(self) -> int:
        return hash((self.name, self.required, self.xpath))


def _located(error: ParseAttrError, xpath: str) -> ParseAttrError:
    return ParseAttrError(error.name, error.required, xpath)


def parse_rgba(text: str) -> RGBA:
    """Parse a ``#RRGGBB`` or ``#RRGGBBAA`` colour; alpha defaults to opaque."""
    if not text.startswith("#") or len(text) not in (7, 9) or not set(text[1:]) <= _HEX:
        raise ValueError(f"invalid colour {text!r}")
    digits = text[1:] if len(text) == 9 else text[1:] + "ff"
    return RGBA(*(int(digits[i : i + 2], 16) for i in range(0, 8, 2)))


def format_rgba(color: RGBA) -> str:
    """Format a colour as ``#rrggbbaa``."""
    r, g, b, a = color
    return f"#{r:02x}{g:02x}{b:02x}{a:02x}"


def _to_f32(value: float) -> float:
    try:
        return _FLOAT32.unpack(_FLOAT32.pack(value))[0]
    except OverflowError as exc:
        raise ValueError(f"{value!r} is out of single precision range") from exc


def _parse_uint32(text: str) -> int:
    if not text or not text.isascii() or not text.isdigit():
        raise ValueError(f"invalid unsigned integer {text!r}")
    value = int(text)
    if value > _MAX_UINT32:
        raise ValueError(f"{text} is out of range")
    return value


def _parse_float32(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"invalid number {text!r}")
    return _to_f32(float(text))


def _uint_attr(attr: Attr, errors: List[ParseAttrError]) -> int:
    try:
        return _parse_uint32(attr.value)
    except ValueError:
        errors.append(ParseAttrError(attr.name.local, True))
        return 0


def _float_value(text: str, name: str, errors: List[ParseAttrError]) -> float:
    try:
        return _parse_float32(text)
    except ValueError:
        errors.append(ParseAttrError(name, True))
        return 0.0


def _uint_list(attr: Attr, errors: List[ParseAttrError]) -> List[int]:
    values = []
    for field in attr.value.split():
        try:
            values.append(_parse_uint32(field))
        except ValueError:
            errors.append(ParseAttrError(attr.name.local, True))
            values.append(0)
    return values


def _plain(attrs: Iterable[Attr]) -> Iterable[Attr]:
    return (a for a in attrs if a.name.space == "")


# child element decoders


@dataclass
class _ColorDecoder:
    group: ColorGroup

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        for attr in _plain(attrs):
            if attr.name.local == "color":
                try:
                    self.group.colors.append(parse_rgba(attr.value))
                except ValueError:
                    self.group.colors.append(RGBA())
                    return [ParseAttrError(attr.name.local, True)]
                break
        return []


@dataclass
class _TexCoordDecoder:
    group: Texture2DGroup

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        errors: List[ParseAttrError] = []
        u = v = 0.0
        for attr in _plain(attrs):
            value = _float_value(attr.value, attr.name.local, errors)
            if attr.name.local == "u":
                u = value
            elif attr.name.local == "v":
                v = value
        self.group.coords.append(TextureCoord(u, v))
        return errors


@dataclass
class _CompositeDecoder:
    group: CompositeMaterials

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        errors: List[ParseAttrError] = []
        values: List[float] = []
        for attr in _plain(attrs):
            if attr.name.local == "values":
                values.extend(
                    _float_value(f, attr.name.local, errors) for f in attr.value.split()
                )
        self.group.composites.append(Composite(values))
        return errors


@dataclass
class _MultiDecoder:
    group: MultiProperties

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        errors: List[ParseAttrError] = []
        indices: List[int] = []
        for attr in _plain(attrs):
            if attr.name.local == "pindices":
                indices.extend(_uint_list(attr, errors))
        self.group.multis.append(Multi(indices))
        return errors


# resource decoders


class ColorGroupDecoder:
    """Decodes a colour group and its colours."""

    def __init__(self) -> None:
        self.resource = ColorGroup()

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        """Read the group attributes and return the parse errors."""
        errors: List[ParseAttrError] = []
        for attr in _plain(attrs):
            if attr.name.local == "id":
                self.resource.id = _uint_attr(attr, errors)
                break
        return errors

    def child(self, name: Name) -> Optional[Tuple[int, _ColorDecoder]]:
        """Return the index and decoder for a child element, or None."""
        if name == Name(NAMESPACE, "color"):
            return len(self.resource.colors), _ColorDecoder(self.resource)
        return None


class Texture2DGroupDecoder:
    """Decodes a texture coordinate group and its coordinates."""

    def __init__(self) -> None:
        self.resource = Texture2DGroup()

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        """Read the group attributes and return the parse errors."""
        errors: List[ParseAttrError] = []
        for attr in _plain(attrs):
            if attr.name.local == "id":
                self.resource.id = _uint_attr(attr, errors)
            elif attr.name.local == "texid":
                self.resource.texture_id = _uint_attr(attr, errors)
        return errors

    def child(self, name: Name) -> Optional[Tuple[int, _TexCoordDecoder]]:
        """Return the index and decoder for a child element, or None."""
        if name == Name(NAMESPACE, "tex2coord"):
            return len(self.resource.coords), _TexCoordDecoder(self.resource)
        return None


class Texture2DDecoder:
    """Decodes a texture."""

    def __init__(self) -> None:
        self.resource = Texture2D()

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        """Read the texture attributes and return the parse errors."""
        errors: List[ParseAttrError] = []
        texture = self.resource
        for attr in _plain(attrs):
            local, value = attr.name.local, attr.value
            if local == "id":
                texture.id = _uint_attr(attr, errors)
            elif local == "path":
                texture.path = value
            elif local == "contenttype":
                texture.content_type = parse_texture2d_type(value)
            elif local == "tilestyleu":
                style = parse_tile_style(value)
                texture.tile_style_u = TileStyle.WRAP if style is None else style
            elif local == "tilestylev":
                style = parse_tile_style(value)
                texture.tile_style_v = TileStyle.WRAP if style is None else style
            elif local == "filter":
                flt = parse_texture_filter(value)
                texture.filter = TextureFilter.AUTO if flt is None else flt
        return errors


class CompositeMaterialsDecoder:
    """Decodes a composite materials group and its composites."""

    def __init__(self) -> None:
        self.resource = CompositeMaterials()

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        """Read the group attributes and return the parse errors."""
        errors: List[ParseAttrError] = []
        for attr in _plain(attrs):
            if attr.name.local == "id":
                self.resource.id = _uint_attr(attr, errors)
            elif attr.name.local == "matid":
                self.resource.material_id = _uint_attr(attr, errors)
            elif attr.name.local == "matindices":
                self.resource.indices.extend(_uint_list(attr, errors))
        return errors

    def child(self, name: Name) -> Optional[Tuple[int, _CompositeDecoder]]:
        """Return the index and decoder for a child element, or None."""
        if name == Name(NAMESPACE, "composite"):
            return len(self.resource.composites), _CompositeDecoder(self.resource)
        return None


class MultiPropertiesDecoder:
    """Decodes a multi-properties group and its entries."""

    def __init__(self) -> None:
        self.resource = MultiProperties()

    def start(self, attrs: Sequence[Attr]) -> List[ParseAttrError]:
        """Read the group attributes and return the parse errors."""
        errors: List[ParseAttrError] = []
        for attr in _plain(attrs):
            if attr.name.local == "id":
                self.resource.id = _uint_attr(attr, errors)
            elif attr.name.local == "blendmethods":
                for field in attr.value.split():
                    method = parse_blend_method(field)
                    self.resource.blend_methods.append(
                        BlendMethod.MIX if method is None else method
                    )
            elif attr.name.local == "pids":
                self.resource.pids.extend(_uint_list(attr, errors))
        return errors

    def child(self, name: Name) -> Optional[Tuple[int, _MultiDecoder]]:
        """Return the index and decoder for a child element, or None."""
        if name == Name(NAMESPACE, "multi"):
            return len(self.resource.multis), _MultiDecoder(self.resource)
        return None


_DECODERS = {
    "colorgroup": ColorGroupDecoder,
    "texture2dgroup": Texture2DGroupDecoder,
    "texture2d": Texture2DDecoder,
    "compositematerials": CompositeMaterialsDecoder,
    "multiproperties": MultiPropertiesDecoder,
}


def new_element_decoder(name: Name):
    """Return a decoder for a materials resource element, or None."""
    if name.space != NAMESPACE:
        return None
    kind = _DECODERS.get(name.local)
    return kind() if kind is not None else None


@dataclass
class _Frame:
    segment: str
    decoder: Any = None
    is_resource: bool = False
    children: int = 0


class _ResourceReader:
    def __init__(self) -> None:
        self.resources: List[Resource] = []
        self.errors: List[ParseAttrError] = []
        self._frames: List[_Frame] = []

    def on_start(self, start: StartElement) -> None:
        name = start.name
        segment = name.local
        decoder = None
        is_resource = False
        if self._frames:
            parent = self._frames[-1]
            position = parent.children
            parent.children += 1
            if [f.segment for f in self._frames] == ["model", "resources"]:
                segment = f"{name.local}[{position}]"
                decoder = new_element_decoder(name)
                is_resource = decoder is not None
            elif parent.decoder is not None:
                child = getattr(parent.decoder, "child", None)
                found = child(name) if child is not None else None
                if found is not None:
                    index, decoder = found
                    segment = f"{name.local}[{index}]"
        if decoder is not None:
            xpath = "/" + "/".join([f.segment for f in self._frames] + [segment])
            self.errors.extend(_located(e, xpath) for e in decoder.start(start.attrs))
        self._frames.append(_Frame(segment, decoder, is_resource))

    def on_end(self, _name: Name) -> None:
        frame = self._frames.pop()
        if frame.is_resource:
            self.resources.append(frame.decoder.resource)


def read_resources(
    data: Union[bytes, str]
) -> Tuple[List[Resource], List[ParseAttrError]]:
    """Read the materials resources of a model document.

    Returns the resources in document order together with the attribute
    errors found; malformed XML raises ``XMLSyntaxError``.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    reader = _ResourceReader()
    Decoder(data, on_start=reader.on_start, on_end=reader.on_end).parse()
    return reader.resources, reader.errors


# encoding


def _format_float(value: float, precision: int) -> str:
    if precision >= 0:
        return f"{value:.{precision}f}"
    target = _to_f32(value)
    text = repr(target)
    for digits in range(1, 10):
        candidate = f"{target:.{digits}g}"
        if _to_f32(float(candidate)) == target:
            text = candidate
            break
    return format(Decimal(text), "f")


def _attr(local: str, value: str) -> Attr:
    return Attr(Name("", local), value)


def _element(local: str, *attrs: Attr) -> StartElement:
    return StartElement(Name(NAMESPACE, local), list(attrs))


def _write_group(
    printer: Printer, start: StartElement, children: Iterable[StartElement]
) -> None:
    printer.write_start(start)
    printer.auto_close = True
    printer.skip_attr_escape = True
    try:
        for child in children:
            printer.write_start(child)
    finally:
        printer.skip_attr_escape = False
        printer.auto_close = False
    printer.write_end(start.name)


def _join(values: Iterable[Any]) -> str:
    return " ".join(str(v) for v in values)


def encode_resource(
    printer: Printer, resource: Resource, precision: int = DEFAULT_PRECISION
) -> List[Tuple[str, str]]:
    """Write one resource; return the (path, type) relationships it needs."""
    if isinstance(resource, ColorGroup):
        _write_group(
            printer,
            _element("colorgroup", _attr("id", str(resource.id))),
            (_element("color", _attr("color", format_rgba(c))) for c in resource.colors),
        )
        return []
    if isinstance(resource, Texture2DGroup):
        _write_group(
            printer,
            _element(
                "texture2dgroup",
                _attr("id", str(resource.id)),
                _attr("texid", str(resource.texture_id)),
            ),
            (
                _element(
                    "tex2coord",
                    _attr("u", _format_float(c.u, precision)),
                    _attr("v", _format_float(c.v, precision)),
                )
                for c in resource.coords
            ),
        )
        return []
    if isinstance(resource, CompositeMaterials):
        _write_group(
            printer,
            _element(
                "compositematerials",
                _attr("id", str(resource.id)),
                _attr("matid", str(resource.material_id)),
                _attr("matindices", _join(resource.indices)),
            ),
            (
                _element(
                    "composite",
                    _attr("values", " ".join(_format_float(v, precision) for v in c.values)),
                )
                for c in resource.composites
            ),
        )
        return []
    if isinstance(resource, MultiProperties):
        _write_group(
            printer,
            _element(
                "multiproperties",
                _attr("id", str(resource.id)),
                _attr("pids", _join(resource.pids)),
                _attr("blendmethods", _join(resource.blend_methods)),
            ),
            (_element("multi", _attr("pindices", _join(m.pindices))) for m in resource.multis),
        )
        return []
    if isinstance(resource, Texture2D):
        start = _element(
            "texture2d",
            _attr("id", str(resource.id)),
            _attr("path", resource.path),
            _attr("contenttype", "" if resource.content_type is None else str(resource.content_type)),
        )
        if resource.tile_style_u != TileStyle.WRAP:
            start.attrs.append(_attr("tilestyleu", str(resource.tile_style_u)))
        if resource.tile_style_v != TileStyle.WRAP:
            start.attrs.append(_attr("tilestylev", str(resource.tile_style_v)))
        if resource.filter != TextureFilter.AUTO:
            start.attrs.append(_attr("filter", str(resource.filter)))
        printer.auto_close = True
        try:
            printer.write_start(start)
        finally:
            printer.auto_close = False
        return [(resource.path, REL_TYPE_TEXTURE3D)]
    raise TypeError(f"not a materials resource: {type(resource).__name__}")


def write_resources(
    resources: Iterable[Resource], precision: int = DEFAULT_PRECISION
) -> str:
    """Write a model document holding the given resources."""
    buffer = io.StringIO()
    printer = Printer(buffer)
    model = StartElement(
        Name(CORE_NAMESPACE, "model"),
        [
            Attr(Name("", "xmlns"), CORE_NAMESPACE),
            Attr(Name("xmlns", "m"), NAMESPACE),
        ],
    )
    printer.write_start(model)
    resources_name = Name(CORE_NAMESPACE, "resources")
    printer.write_start(StartElement(resources_name))
    for resource in resources:
        encode_resource(printer, resource, precision)
    printer.write_end(resources_name)
    build_name = Name(CORE_NAMESPACE, "build")
    printer.write_start(StartElement(build_name))
    printer.write_end(build_name)
    printer.write_end(model.name)
    return buffer.getvalue()