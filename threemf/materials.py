"""Resources of the 3MF materials and properties extension."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, List, NamedTuple, Optional, Type, TypeVar

from threemf.xmlprinter import Name

NAMESPACE = "http://schemas.microsoft.com/3dmanufacturing/material/2015/02"
REL_TYPE_TEXTURE3D = "http://schemas.microsoft.com/3dmanufacturing/2013/01/3dtexture"
DEFAULT_PREFIX = "m"

_E = TypeVar("_E", bound=Enum)


class RGBA(NamedTuple):
    """A colour with 8-bit red, green, blue and alpha channels."""

    r: int = 0
    g: int = 0
    b: int = 0
    a: int = 0


class _TextEnum(str, Enum):
    """An enumeration whose text form is its value."""

    def __str__(self) -> str:
        return self.value


class Texture2DType(_TextEnum):
    """The image formats a texture may use."""

    PNG = "image/png"
    JPEG = "image/jpeg"


class TileStyle(_TextEnum):
    """How a texture repeats outside the unit square."""

    WRAP = "wrap"
    MIRROR = "mirror"
    CLAMP = "clamp"
    NONE = "none"


class TextureFilter(_TextEnum):
    """How a texture is sampled."""

    AUTO = "auto"
    LINEAR = "linear"
    NEAREST = "nearest"


class BlendMethod(_TextEnum):
    """The equation used to blend a layer with the previous one."""

    MIX = "mix"
    MULTIPLY = "multiply"


def _parse(kind: Type[_E], text: str) -> Optional[_E]:
    try:
        return kind(text)
    except ValueError:
        return None


def parse_texture2d_type(text: str) -> Optional[Texture2DType]:
    """Return the texture type named by ``text``, or None."""
    return _parse(Texture2DType, text)


def parse_texture_filter(text: str) -> Optional[TextureFilter]:
    """Return the texture filter named by ``text``, or None."""
    return _parse(TextureFilter, text)


def parse_tile_style(text: str) -> Optional[TileStyle]:
    """Return the tile style named by ``text``, or None."""
    return _parse(TileStyle, text)


def parse_blend_method(text: str) -> Optional[BlendMethod]:
    """Return the blend method named by ``text``, or None."""
    return _parse(BlendMethod, text)


@dataclass
class Texture2D:
    """A 2D texture image stored in the package."""

    xml_name: ClassVar[Name] = Name(NAMESPACE, "texture2d")

    id: int = 0
    path: str = ""
    content_type: Optional[Texture2DType] = None
    tile_style_u: TileStyle = TileStyle.WRAP
    tile_style_v: TileStyle = TileStyle.WRAP
    filter: TextureFilter = TextureFilter.AUTO

    def identify(self) -> int:
        """Return the unique ID of the resource."""
        return self.id


class TextureCoord(NamedTuple):
    """A position in image space."""

    u: float = 0.0
    v: float = 0.0


@dataclass
class Texture2DGroup:
    """A container of texture coordinate properties."""

    xml_name: ClassVar[Name] = Name(NAMESPACE, "texture2dgroup")

    id: int = 0
    texture_id: int = 0
    coords: List[TextureCoord] = field(default_factory=list)

    def identify(self) -> int:
        """Return the unique ID of the resource."""
        return self.id

    def __len__(self) -> int:
        return len(self.coords)


@dataclass
class ColorGroup:
    """A container of colour properties."""

    xml_name: ClassVar[Name] = Name(NAMESPACE, "colorgroup")

    id: int = 0
    colors: List[RGBA] = field(default_factory=list)

    def identify(self) -> int:
        """Return the unique ID of the resource."""
        return self.id

    def __len__(self) -> int:
        return len(self.colors)


@dataclass
class Composite:
    """The proportion of the mixture taken by each material."""

    values: List[float] = field(default_factory=list)


@dataclass
class CompositeMaterials:
    """Materials made by mixing base materials in fixed ratios."""

    xml_name: ClassVar[Name] = Name(NAMESPACE, "compositematerials")

    id: int = 0
    material_id: int = 0
    indices: List[int] = field(default_factory=list)
    composites: List[Composite] = field(default_factory=list)

    def identify(self) -> int:
        """Return the unique ID of the resource."""
        return self.id

    def __len__(self) -> int:
        return len(self.composites)


@dataclass
class Multi:
    """One combination of property indices, one per layer."""

    pindices: List[int] = field(default_factory=list)


@dataclass
class MultiProperties:
    """A container of indexable groups of property indices."""

    xml_name: ClassVar[Name] = Name(NAMESPACE, "multiproperties")

    id: int = 0
    pids: List[int] = field(default_factory=list)
    blend_methods: List[BlendMethod] = field(default_factory=list)
    multis: List[Multi] = field(default_factory=list)

    def identify(self) -> int:
        """Return the unique ID of the resource."""
        return self.id

    def __len__(self) -> int:
        return len(self.multis)