# threemf

Pure Python building blocks for 3MF data. There are no third-party dependencies.

## Modules

- `threemf.geometry` provides the `Point2D` and `Point3D` types, stored in single precision. It also has a 4x4 row-major `Matrix` with `translate`, `mul`, `mul3d`, `mul2d` and `mul_box`. `identity()` returns the identity matrix. `Box` has `extend` and `extend_point`, and `limit_box()` returns an inverted box ready to be extended. For merging vertices and edges there are `quantize`, `pair_key`, `VectorTree` and `PairMatch`.
- `threemf.stl` reads STL meshes. `StlDecoder(stream).decode()` reads a binary stream, detects ASCII or binary STL from the first 300 bytes, and returns a `Mesh` whose vertices are merged on a micron grid. `decode_ascii` and `decode_binary` fill a `Mesh` you pass in. An optional `cancel` callable is checked every 1000 faces. When it returns true, `DecodeCancelled` is raised. Truncated input raises `EOFError`.
- `threemf.xmldecoder` holds `Decoder`, a streaming UTF-8 XML parser. It resolves namespaces and reports start tags, end tags and text through the `on_start`, `on_end` and `on_char` callbacks. Malformed input raises `XMLSyntaxError`.
- `threemf.xmlprinter` holds `Printer`, which writes start and end tags with namespace prefixes. It has `auto_close` and `skip_attr_escape` switches. This module also defines the `Name`, `Attr` and `StartElement` types.
- `threemf.materials` holds the resources of the materials and properties extension: `ColorGroup`, `Texture2D`, `Texture2DGroup`, `CompositeMaterials` and `MultiProperties`. It also has their enums and the `parse_*` helpers, which return `None` for unknown text.
- `threemf.materials_codec` reads and writes those resources as XML.
  - `read_resources(data)` returns `(resources, errors)`. The errors are `ParseAttrError` values that carry an XPath.
  - `write_resources(resources, precision)` returns a model document.
  - `encode_resource` writes a single resource to a `Printer`.
  - `parse_rgba` and `format_rgba` convert colours.
- `threemf.validation` checks materials resources against the extension's rules and returns a list of `ValidationError` values. Two variants mark specific problems: `MissingFieldError` for a required field that is not set, and `IndexedError` for a problem in one element of a list. Resources that refer to other resources are looked up through a `find_asset(id)` callable that you supply.
- `threemf.production` holds the production extension attribute groups `BuildAttr`, `ObjectAttr`, `ItemAttr` and `ComponentAttr`, which carry a UUID and an optional path. It also provides `new_attr_group`, `is_valid_uuid` and `validate_path_uuid`.

## Examples

Transforming geometry:

```python
from threemf.geometry import Point3D, identity

m = identity().translate(1, 2, 3)
print(m.mul3d(Point3D(0, 0, 0)))   # Point3D(1.0, 2.0, 3.0)
print(m)                           # 12 values, three decimals each
```

Importing an STL file:

```python
from threemf.stl import StlDecoder

with open("part.stl", "rb") as fh:
    mesh = StlDecoder(fh).decode()
print(len(mesh.vertices), len(mesh.triangles))
```

Writing and reading material resources:

```python
from threemf.materials import ColorGroup, RGBA
from threemf.materials_codec import read_resources, write_resources

group = ColorGroup(id=1, colors=[RGBA(255, 0, 0, 255)])
document = write_resources([group], 6)
resources, errors = read_resources(document)
```

A negative precision writes each float with the fewest digits that still read back exactly.

Validating a resource:

```python
from threemf.materials import ColorGroup
from threemf.validation import validate_color_group

errors = validate_color_group(ColorGroup(id=1))   # [ERR_EMPTY_RESOURCE_PROPS]
```

Checking production UUIDs:

```python
from threemf.production import ItemAttr, is_valid_uuid, validate_path_uuid

is_valid_uuid("f47ac10b-58cc-0372-8567-0e02b2c3d479")   # True
validate_path_uuid(ItemAttr(), "")                     # [MissingFieldError("UUID")]
```

## What this package does not do

- There is no complete 3MF model: no objects, build items or core mesh resources.
- It does not read or write the ZIP/OPC package that holds a 3MF file.
- No command-line tool is included.
- The production attribute groups are not attached to a model, and there is nothing to generate missing UUIDs.

## Running the tests

```
pip install -e ".[test]"
pytest
```