"""Module for converting between Aleo typed literals and Python values.

Aleo RPC nodes return values as typed literals such as "42u64.public" or
as struct literals with unquoted member names such as
"{ token_id: 123field, active: true }". This module decodes them into
Python values, encodes Python values back into literals, and converts
decoded values into their storage representation.

"""
import json
import re
import typing

from aleo_indexer.domain import PrimitiveKind
from aleo_indexer.domain import SemanticType
from aleo_indexer.domain import TypeKind
from aleo_indexer.exceptions import BaseError

_VISIBILITY_SUFFIXES = ('.private', '.public', '.constant')

_NUMERIC_LITERAL = re.compile(r'^(-?[0-9]+)([A-Za-z][A-Za-z0-9]*)?$')
"""A number optionally followed by a type suffix, e.g. "123u64"."""

_UNSIGNED_BITS = {'u8': 8, 'u16': 16, 'u32': 32, 'u64': 64, 'u128': 128}
_SIGNED_BITS = {'i8': 8, 'i16': 16, 'i32': 32, 'i64': 64, 'i128': 128}
_NUMERIC_SUFFIXES = frozenset([*_UNSIGNED_BITS, *_SIGNED_BITS, 'field',
                               'scalar', 'group'])

_LOOSE_JSON_TOKEN = re.compile(r'([\'"])?([A-Za-z0-9_.]+)([\'"])?')
"""Bare or quoted identifier-like token of a near-JSON literal."""

_TEXT_STORED_KINDS = frozenset(
    [PrimitiveKind.FIELD, PrimitiveKind.U64, PrimitiveKind.U128])
_INTEGER_STORED_KINDS = frozenset(
    [PrimitiveKind.U8, PrimitiveKind.U16, PrimitiveKind.U32])


class CodecError(BaseError):
    """Exception class for unsupported or malformed typed literals.

    """
    pass


def strip_visibility(literal: str) -> str:
    """Remove the visibility suffix (".private", ".public") of a literal.

    """
    for suffix in _VISIBILITY_SUFFIXES:
        if literal.endswith(suffix):
            return literal[:-len(suffix)]
    return literal


def decode_literal(literal: str) -> typing.Any:
    """Decode one typed literal into a Python value.

    Numeric literals become integers (Python integers are unbounded, so
    u64 and u128 values keep their precision), "true" and "false" become
    booleans, and any other literal such as an address is returned
    without its visibility suffix.

    Parameters
    ----------
    literal : str
        The typed literal, e.g. "100u128" or "5field.private".

    Returns
    -------
    any
        The decoded value.

    Raises
    ------
    CodecError
        If the literal carries an unsupported type suffix or its value
        does not fit the type.

    """
    body = strip_visibility(literal.strip())
    if body == 'true':
        return True
    if body == 'false':
        return False
    match = _NUMERIC_LITERAL.match(body)
    if match is None:
        return body
    number, suffix = match.groups()
    value = int(number)
    if suffix is None:
        return value
    if suffix not in _NUMERIC_SUFFIXES:
        raise CodecError(f'unsupported type "{suffix}" in literal {literal}')
    _check_range(value, suffix, literal)
    return value


def decode_structure(value: typing.Any) -> typing.Any:
    """Recursively decode every string leaf of a JSON-like value.

    Parameters
    ----------
    value : any
        A list, dict, string, or any other JSON value.

    Returns
    -------
    any
        The value with every string leaf decoded; non-string leaves
        are returned unchanged.

    Raises
    ------
    CodecError
        If a leaf is an unsupported typed literal.

    """
    if isinstance(value, str):
        return decode_literal(value)
    if isinstance(value, list):
        return [decode_structure(element) for element in value]
    if isinstance(value, dict):
        return {
            member: decode_structure(member_value)
            for member, member_value in value.items()
        }
    return value


def encode_literal(
        value: typing.Any,
        semantic_type: typing.Optional[SemanticType] = None) -> str:
    """Encode a Python value as a typed literal.

    Without a type, or with a non-primitive type, the value is passed
    through as text; this is how untyped raw keys are handled. Values
    which already carry the type suffix are accepted.

    Parameters
    ----------
    value : any
        The value to encode.
    semantic_type : SemanticType, optional
        The type of the literal.

    Returns
    -------
    str
        The typed literal, e.g. "100u128".

    Raises
    ------
    CodecError
        If the value cannot be represented with the given type.

    """
    if semantic_type is None or not semantic_type.is_primitive:
        return _to_text(value)
    kind = typing.cast(PrimitiveKind, semantic_type.primitive)
    if kind is PrimitiveKind.ADDRESS:
        return strip_visibility(_to_text(value))
    if kind is PrimitiveKind.BOOLEAN:
        if isinstance(value, str):
            value = decode_literal(value)
        if not isinstance(value, bool):
            raise CodecError(f'{value!r} is not a boolean')
        return _to_text(value)
    number = _to_integer(value, kind.value)
    _check_range(number, kind.value, str(value))
    return f'{number}{kind.value}'


def repair_loose_json(text: str) -> str:
    """Quote every bare token of a near-JSON literal.

    Only correct for member names and values made of the characters
    [A-Za-z0-9_.]; it is a text transform, not a parser. Every leaf
    becomes a JSON string, e.g. "{a: 1u8}" becomes '{"a": "1u8"}'.

    """
    return _LOOSE_JSON_TOKEN.sub(r'"\2"', text)


def parse_loose_json(text: str) -> typing.Any:
    """Repair and parse a near-JSON struct or array literal.

    Parameters
    ----------
    text : str
        The literal, e.g. "{ token_id: 123field, active: true }".

    Returns
    -------
    any
        The parsed value with all leaves as strings.

    Raises
    ------
    CodecError
        If the repaired text is not valid JSON.

    """
    try:
        return json.loads(repair_loose_json(text))
    except json.JSONDecodeError as error:
        raise CodecError(f'unable to parse literal {text!r}: {error}')


def decode_value(value: typing.Any) -> typing.Any:
    """Decode a raw value which may be a struct or array literal, a
    scalar literal, or an already parsed structure.

    """
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith(('{', '[')):
            return decode_structure(parse_loose_json(stripped))
        return decode_literal(stripped)
    return decode_structure(value)


def decode_key(literal: str, semantic_type: SemanticType) -> typing.Any:
    """Decode a mapping key for storage. Small integer keys become
    integers, u64 and u128 keys decimal text; address, field, boolean
    and struct keys keep their literal text.

    Parameters
    ----------
    literal : str
        The mapping key literal.
    semantic_type : SemanticType
        The key type of the mapping.

    Returns
    -------
    any
        The storage value of the key.

    """
    if not semantic_type.is_primitive:
        return literal
    kind = semantic_type.primitive
    if kind in _INTEGER_STORED_KINDS:
        return decode_literal(literal)
    if kind in (PrimitiveKind.U64, PrimitiveKind.U128):
        return str(decode_literal(literal))
    return strip_visibility(literal)


def to_storage_value(
        value: typing.Any,
        semantic_type: typing.Optional[SemanticType]) -> typing.Any:
    """Convert a decoded value into its storage representation.

    field, u64 and u128 values are stored as decimal text, u8 to u32 as
    integers, booleans as booleans. Structs, records and arrays are
    walked member by member.

    Parameters
    ----------
    value : any
        The decoded value.
    semantic_type : SemanticType, optional
        The declared type; untyped values are stored unchanged.

    Returns
    -------
    any
        The value to write into the column.

    Raises
    ------
    CodecError
        If a primitive value is not of its declared type or is out of
        range for it.

    """
    if value is None or semantic_type is None:
        return value
    if semantic_type.kind is TypeKind.PRIMITIVE:
        kind = semantic_type.primitive
        if kind in _TEXT_STORED_KINDS:
            return str(_to_checked_integer(value, kind.value))
        if kind in _INTEGER_STORED_KINDS:
            return _to_checked_integer(value, kind.value)
        if kind is PrimitiveKind.BOOLEAN:
            if isinstance(value, str):
                value = decode_literal(value)
            if not isinstance(value, bool):
                raise CodecError(f'{value!r} is not a boolean')
            return value
        return str(value)
    if semantic_type.kind is TypeKind.ARRAY and isinstance(value, list):
        return [
            to_storage_value(element, semantic_type.element_type)
            for element in value
        ]
    if isinstance(value, dict):
        return {
            member: to_storage_value(member_value,
                                     semantic_type.fields.get(member))
            for member, member_value in value.items()
        }
    return value


def _to_text(value: typing.Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return value if isinstance(value, str) else str(value)


def _to_integer(value: typing.Any, suffix: str) -> int:
    if isinstance(value, bool):
        raise CodecError(f'{value!r} is not a {suffix} value')
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        body = strip_visibility(value.strip())
        if body.endswith(suffix):
            body = body[:-len(suffix)]
        try:
            return int(body)
        except ValueError:
            pass
    raise CodecError(f'{value!r} is not a {suffix} value')


def _check_range(value: int, suffix: str, literal: str) -> None:
    if suffix in _UNSIGNED_BITS:
        if not 0 <= value < 2**_UNSIGNED_BITS[suffix]:
            raise CodecError(f'{literal} is out of range for {suffix}')
    elif suffix in _SIGNED_BITS:
        bound = 2**(_SIGNED_BITS[suffix] - 1)
        if not -bound <= value < bound:
            raise CodecError(f'{literal} is out of range for {suffix}')


def _to_checked_integer(value: typing.Any, suffix: str) -> int:
    if isinstance(value, str):
        value = decode_literal(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise CodecError(f'{value!r} is not a {suffix} value')
    _check_range(value, suffix, str(value))
    return value
