"""Validation rules for the resources of the materials extension."""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional

from threemf.materials import (
    RGBA,
    ColorGroup,
    CompositeMaterials,
    MultiProperties,
    Texture2D,
    Texture2DGroup,
)

FindAsset = Callable[[int], Optional[Any]]


class ValidationError(Exception):
    """A rule that a resource breaks; equal when type and message match."""

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.args == other.args  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.args))


class MissingFieldError(ValidationError):
    """A required field is not set."""

    def __init__(self, name: str) -> None:
        super().__init__(f"required field {name} is not present")
        self.name = name


class IndexedError(ValidationError):
    """An error found in one element of a list."""

    def __init__(self, error: ValidationError, element: str, index: int) -> None:
        super().__init__(f"{element}[{index}]: {error}")
        self.error = error
        self.element = element
        self.index = index


ERR_MISSING_ID = ValidationError("resource id MUST be greater than zero")
ERR_EMPTY_RESOURCE_PROPS = ValidationError("resource must contain at least one property")
ERR_MISSING_RESOURCE = ValidationError("referenced resource MUST be defined")
ERR_INDEX_OUT_OF_BOUNDS = ValidationError("index is out of bounds")

ERR_MULTI_BLEND = ValidationError("there MUST NOT be more blendmethods than layers – 1")
ERR_MATERIAL_MULTI = ValidationError(
    "a material, if included, MUST be positioned as the first layer"
)
ERR_MULTI_REF_MULTI = ValidationError(
    "the pids list MUST NOT contain any references to a multiproperties"
)
ERR_MULTI_COLORS = ValidationError(
    "the pids list MUST NOT contain more than one reference to a colorgroup"
)
ERR_TEXTURE_REFERENCE = ValidationError("MUST reference to a texture resource")
ERR_COMPOSITE_BASE = ValidationError("MUST reference to a basematerials group")
ERR_MISSING_TEXTURE_PART = ValidationError("texture part MUST be added as an attachment")


def _is_base_materials(asset: Any) -> bool:
    """Base materials are recognised by their ``materials`` list."""
    return hasattr(asset, "materials")


def validate_color_group(group: ColorGroup) -> List[ValidationError]:
    """Return the problems found in a colour group."""
    errors: List[ValidationError] = []
    if group.id == 0:
        errors.append(ERR_MISSING_ID)
    if not group.colors:
        errors.append(ERR_EMPTY_RESOURCE_PROPS)
    errors.extend(
        IndexedError(MissingFieldError("color"), "color", j)
        for j, color in enumerate(group.colors)
        if RGBA(*color) == RGBA()
    )
    return errors


def validate_texture2d_group(
    group: Texture2DGroup, find_asset: FindAsset
) -> List[ValidationError]:
    """Return the problems found in a texture coordinate group."""
    errors: List[ValidationError] = []
    if group.id == 0:
        errors.append(ERR_MISSING_ID)
    if group.texture_id == 0:
        errors.append(MissingFieldError("texid"))
    elif not isinstance(find_asset(group.texture_id), Texture2D):
        errors.append(ERR_TEXTURE_REFERENCE)
    if not group.coords:
        errors.append(ERR_EMPTY_RESOURCE_PROPS)
    return errors


def validate_texture2d(
    texture: Texture2D, attachments: Iterable[str]
) -> List[ValidationError]:
    """Return the problems found in a texture, given the attachment paths."""
    errors: List[ValidationError] = []
    if texture.id == 0:
        errors.append(ERR_MISSING_ID)
    if not texture.path:
        errors.append(MissingFieldError("path"))
    else:
        wanted = texture.path.casefold()
        if not any(path.casefold() == wanted for path in attachments):
            errors.append(ERR_MISSING_TEXTURE_PART)
    if texture.content_type is None:
        errors.append(MissingFieldError("contenttype"))
    return errors


def validate_multi_properties(
    multi: MultiProperties, find_asset: FindAsset
) -> List[ValidationError]:
    """Return the problems found in a multi-properties group."""
    errors: List[ValidationError] = []
    if multi.id == 0:
        errors.append(ERR_MISSING_ID)
    if not multi.pids:
        errors.append(MissingFieldError("pids"))
    if len(multi.blend_methods) > len(multi.pids) - 1:
        errors.append(ERR_MULTI_BLEND)
    if not multi.multis:
        errors.append(ERR_EMPTY_RESOURCE_PROPS)

    color_count = 0
    reported_missing = False
    lengths = [0] * len(multi.pids)
    for j, pid in enumerate(multi.pids):
        asset = find_asset(pid)
        if asset is None:
            if not reported_missing:
                reported_missing = True
                errors.append(ERR_MISSING_RESOURCE)
        elif isinstance(asset, MultiProperties):
            errors.append(ERR_MULTI_REF_MULTI)
        elif isinstance(asset, CompositeMaterials):
            if j != 0:
                errors.append(ERR_MATERIAL_MULTI)
            lengths[j] = len(asset.composites)
        elif isinstance(asset, ColorGroup):
            if color_count == 1:
                errors.append(ERR_MULTI_COLORS)
            color_count += 1
            lengths[j] = len(asset.colors)
        elif _is_base_materials(asset):
            if j != 0:
                errors.append(ERR_MATERIAL_MULTI)
            lengths[j] = len(asset.materials)

    for j, item in enumerate(multi.multis):
        if any(
            k < len(lengths) and lengths[k] < index
            for k, index in enumerate(item.pindices)
        ):
            errors.append(IndexedError(ERR_INDEX_OUT_OF_BOUNDS, "multi", j))
    return errors


def validate_composite_materials(
    composite: CompositeMaterials, find_asset: FindAsset
) -> List[ValidationError]:
    """Return the problems found in a composite materials group."""
    errors: List[ValidationError] = []
    if composite.id == 0:
        errors.append(ERR_MISSING_ID)
    if composite.material_id == 0:
        errors.append(MissingFieldError("matid"))
    else:
        asset = find_asset(composite.material_id)
        if asset is None:
            errors.append(ERR_MISSING_RESOURCE)
        elif isinstance(asset, (CompositeMaterials, MultiProperties, ColorGroup)) or not _is_base_materials(asset):
            errors.append(ERR_COMPOSITE_BASE)
        elif any(index > len(asset.materials) for index in composite.indices):
            errors.append(ERR_INDEX_OUT_OF_BOUNDS)
    if not composite.indices:
        errors.append(MissingFieldError("matindices"))
    if not composite.composites:
        errors.append(ERR_EMPTY_RESOURCE_PROPS)
    return errors


def validate_asset(
    asset: Any, find_asset: FindAsset, attachments: Iterable[str]
) -> List[ValidationError]:
    """Return the problems found in any materials resource; others pass."""
    if isinstance(asset, ColorGroup):
        return validate_color_group(asset)
    if isinstance(asset, Texture2DGroup):
        return validate_texture2d_group(asset, find_asset)
    if isinstance(asset, Texture2D):
        return validate_texture2d(asset, attachments)
    if isinstance(asset, MultiProperties):
        return validate_multi_properties(asset, find_asset)
    if isinstance(asset, CompositeMaterials):
        return validate_composite_materials(asset, find_asset)
    return []