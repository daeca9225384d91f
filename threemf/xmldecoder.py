"""A streaming XML parser that reports start tags, end tags and text through callbacks."""

from __future__ import annotations

import io
import string
from typing import BinaryIO, Callable, Dict, List, NamedTuple, Optional, Union

from threemf.xmlprinter import XML_NAMESPACE, Attr, Name, StartElement

_CHUNK_SIZE = 4096
_MAX_RUNE = 0x10FFFF
_XMLNS = "xmlns"
_XML = "xml"

_LT = ord("<")
_GT = ord(">")
_AMP = ord("&")
_SLASH = ord("/")
_QUESTION = ord("?")
_EQUALS = ord("=")
_SEMICOLON = ord(";")
_HASH = ord("#")
_LOWER_X = ord("x")
_CR = ord("\r")
_LF = ord("\n")
_QUOTES = frozenset(b"\"'")
_SPACES = frozenset(b" \r\n\t")
_NAME_BYTES = frozenset((string.ascii_letters + string.digits + "_:.-").encode("ascii"))
_DEC_DIGITS = frozenset(string.digits.encode("ascii"))
_HEX_DIGITS = frozenset(string.hexdigits.encode("ascii"))

_ENTITIES = {
    "lt": "<",
    "gt": ">",
    "amp": "&",
    "apos": "'",
    "quot": '"',
}


class XMLSyntaxError(ValueError):
    """Raised when the input is not well formed XML."""

    def __init__(self, msg: str) -> None:
        super().__init__(msg)
        self.msg = msg


class _ElementMark(NamedTuple):
    name: Name


class _NsMark(NamedTuple):
    local: str
    url: str
    present: bool


OnStart = Optional[Callable[[StartElement], None]]
OnEnd = Optional[Callable[[Name], None]]
OnChar = Optional[Callable[[str], None]]


class Decoder:
    """Parses UTF-8 XML from a byte stream and calls back for every token."""

    def __init__(
        self,
        stream: Union[BinaryIO, bytes, bytearray],
        on_start: OnStart = None,
        on_end: OnEnd = None,
        on_char: OnChar = None,
    ) -> None:
        if isinstance(stream, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(bytes(stream))
        self._stream = stream
        self.on_start = on_start
        self.on_end = on_end
        self.on_char = on_char
        self._buf = b""
        self._pos = 0
        self._pending: Optional[int] = None
        self._at_eof = False
        self._ns: Dict[str, str] = {}
        self._stack: List[Union[_ElementMark, _NsMark]] = []
        self._need_close = False
        self._to_close = Name()
        self._error: Optional[XMLSyntaxError] = None

    def raw_token(self) -> bool:
        """Read one token and report it; return False once the input is exhausted."""
        if self._error is not None:
            raise self._error
        try:
            return self._token()
        except XMLSyntaxError as exc:
            self._error = exc
            raise

    def parse(self) -> None:
        """Read tokens until the end of the input."""
        while self.raw_token():
            pass

    # byte input

    def _getc(self) -> Optional[int]:
        if self._pending is not None:
            b, self._pending = self._pending, None
            return b
        if self._pos >= len(self._buf):
            if self._at_eof:
                return None
            chunk = self._stream.read(_CHUNK_SIZE)
            if not chunk:
                self._at_eof = True
                return None
            self._buf = bytes(chunk)
            self._pos = 0
        b = self._buf[self._pos]
        self._pos += 1
        return b

    def _must_getc(self) -> int:
        b = self._getc()
        if b is None:
            raise XMLSyntaxError("unexpected EOF")
        return b

    def _ungetc(self, b: int) -> None:
        self._pending = b

    def _space(self) -> None:
        while True:
            b = self._getc()
            if b is None:
                return
            if b not in _SPACES:
                self._ungetc(b)
                return

    # tokens

    def _token(self) -> bool:
        if self._need_close:
            self._need_close = False
            self._handle_end(self._to_close)
            return True

        b = self._getc()
        if b is None:
            if self._stack:
                raise XMLSyntaxError("unexpected EOF")
            return False

        if b != _LT:
            self._ungetc(b)
            data = self._text(None)
            if self.on_char is not None:
                self.on_char(data)
            return True

        b = self._must_getc()
        if b == _SLASH:
            name = self._nsname()
            if name is None:
                raise XMLSyntaxError("expected element name after </")
            self._space()
            if self._must_getc() != _GT:
                raise XMLSyntaxError(
                    "invalid characters between </" + name.local + " and >"
                )
            self._handle_end(name)
            return True

        if b == _QUESTION:
            if self._name() is None:
                raise XMLSyntaxError("expected target name after <?")
            self._space()
            previous = 0
            while True:
                b = self._must_getc()
                if previous == _QUESTION and b == _GT:
                    break
                previous = b
            return True

        self._ungetc(b)
        name = self._nsname()
        if name is None:
            raise XMLSyntaxError("expected element name after <")

        attrs: List[Attr] = []
        empty = False
        while True:
            self._space()
            b = self._must_getc()
            if b == _SLASH:
                empty = True
                if self._must_getc() != _GT:
                    raise XMLSyntaxError("expected /> in element")
                break
            if b == _GT:
                break
            self._ungetc(b)
            attr_name = self._nsname()
            if attr_name is None:
                raise XMLSyntaxError("expected attribute name in element")
            self._space()
            if self._must_getc() != _EQUALS:
                raise XMLSyntaxError("attribute name without = in element")
            self._space()
            attrs.append(Attr(attr_name, self._attrval()))

        if empty:
            self._need_close = True
            self._to_close = name
        self._handle_start(name, attrs)
        return True

    def _attrval(self) -> str:
        b = self._must_getc()
        if b in _QUOTES:
            return self._text(b)
        raise XMLSyntaxError("unquoted or missing attribute value in element")

    def _text(self, quote: Optional[int]) -> str:
        buf = bytearray()
        previous = 0
        while True:
            b = self._getc()
            if b is None:
                break
            if b == _LT:
                if quote is not None:
                    raise XMLSyntaxError("unescaped < inside quoted string")
                self._ungetc(b)
                break
            if quote is not None and b == quote:
                break
            if b == _AMP:
                self._entity(buf)
                previous = 0
                continue
            if b == _CR:
                buf.append(_LF)
            elif not (previous == _CR and b == _LF):
                buf.append(b)
            previous = b
        return buf.decode("utf-8", errors="replace")

    def _entity(self, buf: bytearray) -> None:
        """Replace a character reference that follows '&' in ``buf``."""
        before = len(buf)
        buf.append(_AMP)
        replacement: Optional[str] = None
        b = self._must_getc()
        if b == _HASH:
            buf.append(b)
            b = self._must_getc()
            base, digits = 10, _DEC_DIGITS
            if b == _LOWER_X:
                base, digits = 16, _HEX_DIGITS
                buf.append(b)
                b = self._must_getc()
            start = len(buf)
            while b in digits:
                buf.append(b)
                b = self._must_getc()
            if b != _SEMICOLON:
                self._ungetc(b)
            else:
                number = bytes(buf[start:]).decode("ascii")
                buf.append(_SEMICOLON)
                if number:
                    code = int(number, base)
                    if code <= _MAX_RUNE:
                        replacement = (
                            "\ufffd" if 0xD800 <= code <= 0xDFFF else chr(code)
                        )
        else:
            self._ungetc(b)
            self._read_name(buf)
            b = self._must_getc()
            if b != _SEMICOLON:
                self._ungetc(b)
            else:
                entity = bytes(buf[before + 1 :]).decode("utf-8", errors="replace")
                buf.append(_SEMICOLON)
                if entity:
                    replacement = _ENTITIES.get(entity)

        if replacement is not None:
            del buf[before:]
            buf.extend(replacement.encode("utf-8"))
            return
        text = bytes(buf[before:]).decode("utf-8", errors="replace")
        if not text.endswith(";"):
            text += " (no semicolon)"
        raise XMLSyntaxError("invalid character entity " + text)

    # names

    def _read_name(self, buf: bytearray) -> bool:
        b = self._must_getc()
        if b < 0x80 and b not in _NAME_BYTES:
            self._ungetc(b)
            return False
        buf.append(b)
        while True:
            b = self._must_getc()
            if b < 0x80 and b not in _NAME_BYTES:
                self._ungetc(b)
                return True
            buf.append(b)

    def _name(self) -> Optional[str]:
        buf = bytearray()
        if not self._read_name(buf):
            return None
        return buf.decode("utf-8", errors="replace")

    def _nsname(self) -> Optional[Name]:
        text = self._name()
        if text is None:
            return None
        space, sep, local = text.partition(":")
        if not sep:
            return Name("", text)
        return Name(space, local)

    def _translate(self, name: Name, is_element: bool) -> Name:
        space = name.space
        if space == _XMLNS:
            return name
        if space == "" and not is_element:
            return name
        if space == _XML:
            space = XML_NAMESPACE
        elif space == "" and name.local == _XMLNS:
            return name
        if space in self._ns:
            space = self._ns[space]
        return Name(space, name.local)

    # element stack

    def _push_ns(self, local: str) -> None:
        present = local in self._ns
        self._stack.append(_NsMark(local, self._ns.get(local, ""), present))

    def _handle_start(self, name: Name, attrs: List[Attr]) -> None:
        for attr in attrs:
            if attr.name.space == _XMLNS:
                self._push_ns(attr.name.local)
                self._ns[attr.name.local] = attr.value
            if attr.name.space == "" and attr.name.local == _XMLNS:
                self._push_ns("")
                self._ns[""] = attr.value

        name = self._translate(name, True)
        attrs = [Attr(self._translate(a.name, False), a.value) for a in attrs]
        self._stack.append(_ElementMark(name))
        if self.on_start is not None:
            self.on_start(StartElement(name, attrs))

    def _handle_end(self, name: Name) -> None:
        name = self._translate(name, True)
        self._pop_element(name)
        if self.on_end is not None:
            self.on_end(name)

    def _pop_element(self, name: Name) -> None:
        top = self._stack.pop() if self._stack else None
        if not isinstance(top, _ElementMark):
            raise XMLSyntaxError("unexpected end element </" + name.local + ">")
        if top.name.local != name.local:
            raise XMLSyntaxError(
                "element <" + top.name.local + "> closed by </" + name.local + ">"
            )
        if top.name.space != name.space:
            raise XMLSyntaxError(
                "element <"
                + top.name.local
                + "> in space "
                + top.name.space
                + "closed by </"
                + name.local
                + "> in space "
                + name.space
            )
        while self._stack and isinstance(self._stack[-1], _NsMark):
            mark = self._stack.pop()
            if mark.present:
                self._ns[mark.local] = mark.url
            else:
                self._ns.pop(mark.local, None)