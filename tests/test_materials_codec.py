import io
import struct

import pytest

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
    Texture2DType,
    TextureCoord,
    TextureFilter,
    TileStyle,
)
from threemf.materials_codec import (
    ColorGroupDecoder,
    CompositeMaterialsDecoder,
    MultiPropertiesDecoder,
    ParseAttrError,
    Texture2DDecoder,
    Texture2DGroupDecoder,
    encode_resource,
    format_rgba,
    new_element_decoder,
    parse_rgba,
    read_resources,
    write_resources,
)
from threemf.xmldecoder import XMLSyntaxError
from threemf.xmlprinter import Attr, Name, Printer


def f32(value):
    return struct.unpack("<f", struct.pack("<f", value))[0]


def expected_resources():
    return [
        Texture2D(
            id=6,
            path="/3D/Texture/msLogo.png",
            content_type=Texture2DType.PNG,
            tile_style_u=TileStyle.WRAP,
            tile_style_v=TileStyle.MIRROR,
            filter=TextureFilter.AUTO,
        ),
        ColorGroup(
            id=1,
            colors=[
                RGBA(255, 255, 255, 255),
                RGBA(0, 0, 0, 255),
                RGBA(26, 181, 103, 255),
                RGBA(223, 4, 90, 255),
            ],
        ),
        Texture2DGroup(
            id=2,
            texture_id=6,
            coords=[
                TextureCoord(f32(0.3), f32(0.5)),
                TextureCoord(f32(0.3), f32(0.8)),
                TextureCoord(f32(0.5), f32(0.8)),
                TextureCoord(f32(0.5), f32(0.5)),
            ],
        ),
        CompositeMaterials(
            id=4,
            material_id=5,
            indices=[1, 2],
            composites=[
                Composite([f32(0.5), f32(0.5)]),
                Composite([f32(0.2), f32(0.8)]),
            ],
        ),
        MultiProperties(
            id=9,
            blend_methods=[BlendMethod.MULTIPLY],
            pids=[5, 2],
            multis=[Multi([0, 0]), Multi([1, 0]), Multi([2, 3])],
        ),
    ]


ROOT_FILE = """
<model xmlns="http://schemas.microsoft.com/3dmanufacturing/core/2015/02" xmlns:m="http://schemas.microsoft.com/3dmanufacturing/material/2015/02">
    <resources>
        <m:texture2d id="6" path="/3D/Texture/msLogo.png" contenttype="image/png" tilestyleu="wrap" tilestylev="mirror" filter="auto" />
        <m:colorgroup id="1">
            <m:color color="#FFFFFF" /> <m:color color="#000000" /> <m:color color="#1AB567" /> <m:color color="#DF045A" />
        </m:colorgroup>
        <m:texture2dgroup id="2" texid="6">
            <m:tex2coord u="0.3" v="0.5" /> <m:tex2coord u="0.3" v="0.8" />\t<m:tex2coord u="0.5" v="0.8" />\t<m:tex2coord u="0.5" v="0.5" />
        </m:texture2dgroup>
        <m:compositematerials id="4" matid="5" matindices="1 2">
            <m:composite values="0.5 0.5"/>
            <m:composite values="0.2 0.8"/>
        </m:compositematerials>
        <m:multiproperties id="9" pids="5 2" blendmethods="multiply">
            <m:multi pindices="0 0" />
            <m:multi pindices="1 0" />
            <m:multi pindices="2 3" />
        </m:multiproperties>
    </resources>
    <build>
    </build>
</model>"""

WARN_FILE = """
<model xmlns="http://schemas.microsoft.com/3dmanufacturing/core/2015/02" xmlns:m="http://schemas.microsoft.com/3dmanufacturing/material/2015/02">
    <resources>
        <m:texture2d id="6" qm:mq="other" path="/3D/Texture/msLogo.png" contenttype="image/png" tilestyleu="wrap" tilestylev="mirror" filter="auto" />
        <m:texture2d id="b" contenttype="image/png" tilestyleu="wrap" tilestylev="mirror" filter="auto" />
        <m:colorgroup id="1">
            <m:color color="#FFFFF" /> <m:color color="#000000" /> <m:color color="#1AB567" /> <m:color color="#DF045A" />
        </m:colorgroup>
        <m:texture2dgroup qm:mq="other" id="2" texid="a">
            <m:tex2coord qm:mq="other" u="b" v="0.5" /> <m:tex2coord u="0.3" v="c" />\t<m:tex2coord u="0.5" v="0.8" />\t<m:tex2coord u="0.5" v="0.5" />
        </m:texture2dgroup>
        <m:compositematerials id="4" matid="a" qm:mq="other">
            <m:composite/>
            <m:composite values="a 0.8"/>
        </m:compositematerials>
        <m:multiproperties id="9" qm:mq="other" pids="a 2">
            <m:multi />
        </m:multiproperties>
        <m:multiproperties id="19" />
        <object id="8" name="Box 1" pid="5" pindex="0" type="model">
            <mesh>
                <vertices>
                    <vertex x="0" y="0" z="0" />
                    <vertex x="100.00000" y="0" z="0" />
                    <vertex x="100.00000" y="100.00000" z="0" />
                </vertices>
                <triangles>
                    <triangle v1="2" v2="3" v3="1" />
                    <triangle v1="6" v2="5" v3="1" pid="1" p1="2" p2="1" p3="3"/>
                </triangles>
            </mesh>
        </object>
    </resources>
    <build>
    </build>
</model>"""


def test_decode_base():
    resources, errors = read_resources(ROOT_FILE.encode("utf-8"))
    assert errors == []
    assert resources == expected_resources()


def test_decode_warns():
    resources, errors = read_resources(WARN_FILE)
    assert [(e.xpath, e.name) for e in errors] == [
        ("/model/resources/texture2d[1]", "id"),
        ("/model/resources/colorgroup[2]/color[0]", "color"),
        ("/model/resources/texture2dgroup[3]", "texid"),
        ("/model/resources/texture2dgroup[3]/tex2coord[0]", "u"),
        ("/model/resources/texture2dgroup[3]/tex2coord[1]", "v"),
        ("/model/resources/compositematerials[4]", "matid"),
        ("/model/resources/compositematerials[4]/composite[1]", "values"),
        ("/model/resources/multiproperties[5]", "pids"),
    ]
    assert all(e.required for e in errors)
    assert errors[0] == ParseAttrError("id", True, "/model/resources/texture2d[1]")
    assert str(errors[0]).startswith("XPath: /model/resources/texture2d[1]: ")


def test_decode_warns_keeps_resources():
    resources, _ = read_resources(WARN_FILE)
    assert len(resources) == 7
    assert resources[1].id == 0
    assert resources[2].colors[0] == RGBA()
    assert resources[4].composites == [Composite([]), Composite([0.0, f32(0.8)])]
    assert resources[5].pids == [0, 2]
    assert resources[5].multis == [Multi([])]


def test_decode_syntax_error():
    with pytest.raises(XMLSyntaxError):
        read_resources(b"<model><resources></model>")


def test_marshal_round_trip():
    resources = expected_resources()
    text = write_resources(resources, 6)
    decoded, errors = read_resources(text)
    assert errors == []
    assert decoded == resources


def test_marshal_shortest_precision_round_trip():
    resources = expected_resources()
    text = write_resources(resources, -1)
    assert '<m:tex2coord u="0.3" v="0.5"/>' in text
    decoded, errors = read_resources(text)
    assert errors == []
    assert decoded == resources


def test_write_resources_output():
    text = write_resources(expected_resources()[:2], 3)
    assert text.startswith(
        '<model xmlns="http://schemas.microsoft.com/3dmanufacturing/core/2015/02" '
        'xmlns:m="http://schemas.microsoft.com/3dmanufacturing/material/2015/02">'
    )
    assert (
        '<m:texture2d id="6" path="/3D/Texture/msLogo.png" '
        'contenttype="image/png" tilestylev="mirror"/>'
    ) in text
    assert '<m:colorgroup id="1"><m:color color="#ffffffff"/>' in text
    assert text.endswith("</m:colorgroup></resources><build></build></model>")


def test_encode_resource_texture_group_precision():
    buffer = io.StringIO()
    printer = Printer(buffer)
    group = Texture2DGroup(id=2, texture_id=6, coords=[TextureCoord(f32(0.3), f32(0.5))])
    assert encode_resource(printer, group, 3) == []
    assert buffer.getvalue() == (
        '<texture2dgroup id="2" texid="6"><tex2coord u="0.300" v="0.500"/></texture2dgroup>'
    )
    assert printer.auto_close is False
    assert printer.skip_attr_escape is False


def test_encode_resource_texture_relationship_and_escape():
    buffer = io.StringIO()
    texture = Texture2D(id=1, path="/a&b.png", content_type=Texture2DType.JPEG,
                        filter=TextureFilter.NEAREST)
    rels = encode_resource(Printer(buffer), texture)
    assert rels == [("/a&b.png", REL_TYPE_TEXTURE3D)]
    assert buffer.getvalue() == (
        '<texture2d id="1" path="/a&amp;b.png" contenttype="image/jpeg" filter="nearest"/>'
    )


def test_encode_multi_and_composite():
    buffer = io.StringIO()
    printer = Printer(buffer)
    encode_resource(printer, MultiProperties(id=3, pids=[1, 2],
                                             blend_methods=[BlendMethod.MIX],
                                             multis=[Multi([0, 1])]))
    encode_resource(printer, CompositeMaterials(id=4, material_id=1, indices=[0, 1],
                                                composites=[Composite([0.25, 0.75])]), 2)
    assert buffer.getvalue() == (
        '<multiproperties id="3" pids="1 2" blendmethods="mix"><multi pindices="0 1"/></multiproperties>'
        '<compositematerials id="4" matid="1" matindices="0 1"><composite values="0.25 0.75"/></compositematerials>'
    )


def test_encode_unknown_resource():
    with pytest.raises(TypeError):
        encode_resource(Printer(io.StringIO()), object())


@pytest.mark.parametrize(
    "text, expected",
    [
        ("#FFFFFF", RGBA(255, 255, 255, 255)),
        ("#000000", RGBA(0, 0, 0, 255)),
        ("#1AB567", RGBA(26, 181, 103, 255)),
        ("#DF045A", RGBA(223, 4, 90, 255)),
        ("#01020304", RGBA(1, 2, 3, 4)),
    ],
)
def test_parse_rgba(text, expected):
    assert parse_rgba(text) == expected


@pytest.mark.parametrize("text", ["#FFFFF", "FFFFFF", "#GG0000", "", "#1234567890"])
def test_parse_rgba_invalid(text):
    with pytest.raises(ValueError):
        parse_rgba(text)


def test_format_rgba():
    assert format_rgba(RGBA(26, 181, 103, 255)) == "#1ab567ff"
    assert parse_rgba(format_rgba(RGBA(1, 2, 3, 4))) == RGBA(1, 2, 3, 4)


@pytest.mark.parametrize(
    "local, kind",
    [
        ("colorgroup", ColorGroupDecoder),
        ("texture2dgroup", Texture2DGroupDecoder),
        ("texture2d", Texture2DDecoder),
        ("compositematerials", CompositeMaterialsDecoder),
        ("multiproperties", MultiPropertiesDecoder),
    ],
)
def test_new_element_decoder(local, kind):
    decoder = new_element_decoder(Name(NAMESPACE, local))
    assert isinstance(decoder, kind)
    assert decoder.start([Attr(Name("", "id"), "7")]) == []
    assert decoder.resource.identify() == 7
    assert decoder.resource.xml_name.local == local


def test_new_element_decoder_other():
    assert new_element_decoder(Name("other", "colorgroup")) is None
    assert new_element_decoder(Name(NAMESPACE, "object")) is None


def test_color_group_decoder():
    decoder = ColorGroupDecoder()
    assert decoder.start([Attr(Name("", "id"), "x")]) == [ParseAttrError("id")]
    assert decoder.resource.id == 0
    assert decoder.child(Name("", "color")) is None
    index, child = decoder.child(Name(NAMESPACE, "color"))
    assert index == 0
    assert child.start([Attr(Name("", "color"), "#102030")]) == []
    assert decoder.resource.colors == [RGBA(16, 32, 48, 255)]
    index, _ = decoder.child(Name(NAMESPACE, "color"))
    assert index == 1


def test_texture_decoder_invalid_enums():
    decoder = Texture2DDecoder()
    errors = decoder.start([
        Attr(Name("", "id"), "3"),
        Attr(Name("", "contenttype"), "image/gif"),
        Attr(Name("", "tilestyleu"), "bogus"),
        Attr(Name("", "tilestylev"), "clamp"),
        Attr(Name("", "filter"), "bogus"),
    ])
    assert errors == []
    assert decoder.resource == Texture2D(id=3, content_type=None,
                                         tile_style_u=TileStyle.WRAP,
                                         tile_style_v=TileStyle.CLAMP,
                                         filter=TextureFilter.AUTO)


def test_multi_properties_decoder_blend_fallback():
    decoder = MultiPropertiesDecoder()
    assert decoder.start([
        Attr(Name("", "id"), "9"),
        Attr(Name("", "blendmethods"), "multiply other"),
        Attr(Name("", "pids"), "1 99999999999"),
    ]) == [ParseAttrError("pids")]
    assert decoder.resource.blend_methods == [BlendMethod.MULTIPLY, BlendMethod.MIX]
    assert decoder.resource.pids == [1, 0]


def test_composite_decoder_child():
    decoder = CompositeMaterialsDecoder()
    assert decoder.start([Attr(Name("", "matindices"), "1 z")]) == [ParseAttrError("matindices")]
    assert decoder.resource.indices == [1, 0]
    index, child = decoder.child(Name(NAMESPACE, "composite"))
    assert index == 0
    assert child.start([Attr(Name("", "values"), "0.5 1e40")]) == [ParseAttrError("values")]
    assert decoder.resource.composites == [Composite([0.5, 0.0])]