# Purpose: Tag-length-value primitives for EMV merchant-presented QR payloads.

from dataclasses import dataclass

from qr_errors import CorruptedData, InvalidLength, InvalidTag

TAG_WIDTH = 2
LENGTH_WIDTH = 2
MAX_VALUE_LENGTH = 99


@dataclass(frozen=True)
class Field:
    """One TLV element. Nested templates are Fields whose value decodes to more Fields."""
    tag: str
    length: int
    value: str

    def children(self):
        return decode_fields(self.value, parent_tag=self.tag)

    def encode(self):
        return encode_field(self.tag, self.value)


def decode_fields(data, parent_tag=None):
    """
    Splits a TLV string into an ordered tuple of Fields.

    Raises InvalidTag, InvalidLength or CorruptedData on the first structural fault.
    Positions in error details are offsets into `data`.
    """
    fields = []
    i = 0
    while i < len(data):
        where = {"offset": i}
        if parent_tag is not None:
            where["parent_tag"] = parent_tag

        if len(data) - i < TAG_WIDTH + LENGTH_WIDTH:
            raise CorruptedData(
                f"truncated field header at offset {i}", tag=parent_tag, details=where
            )

        tag = data[i:i + TAG_WIDTH]
        if not (tag.isascii() and tag.isdigit()):
            raise InvalidTag(f"tag {tag!r} is not numeric", tag=tag, details=where)

        length_str = data[i + TAG_WIDTH:i + TAG_WIDTH + LENGTH_WIDTH]
        if not (length_str.isascii() and length_str.isdigit()):
            raise InvalidLength(
                f"length {length_str!r} is not a decimal number", tag=tag, details=where
            )
        length = int(length_str)

        start = i + TAG_WIDTH + LENGTH_WIDTH
        end = start + length
        if end > len(data):
            where["declared"] = length
            where["available"] = len(data) - start
            raise CorruptedData(
                f"value of tag {tag} declares {length} characters, {len(data) - start} remain",
                tag=tag,
                details=where,
            )

        fields.append(Field(tag, length, data[start:end]))
        i = end

    return tuple(fields)


def decode_nested(data, parent_tag=None):
    """Decodes a TLV string into a tree of (Field, children) pairs, recursing while values parse."""
    tree = []
    for field in decode_fields(data, parent_tag=parent_tag):
        try:
            children = decode_nested(field.value, parent_tag=field.tag) if field.value else ()
        except (CorruptedData, InvalidTag, InvalidLength):
            children = ()
        tree.append((field, children))
    return tuple(tree)


def encode_field(tag, value):
    if len(tag) != TAG_WIDTH or not (tag.isascii() and tag.isdigit()):
        raise InvalidTag(f"tag {tag!r} must be two decimal digits", tag=tag)
    if len(value) > MAX_VALUE_LENGTH:
        raise InvalidLength(
            f"value of {len(value)} characters exceeds {MAX_VALUE_LENGTH}",
            tag=tag,
            details={"length": len(value)},
        )
    return f"{tag}{len(value):02d}{value}"


def encode_fields(pairs):
    """Encodes (tag, value) pairs or Fields in the order given."""
    parts = []
    for item in pairs:
        if isinstance(item, Field):
            parts.append(encode_field(item.tag, item.value))
        else:
            tag, value = item
            parts.append(encode_field(tag, value))
    return "".join(parts)


def find_field(fields, tag):
    for field in fields:
        if field.tag == tag:
            return field
    return None


def field_value(fields, tag, default=None):
    field = find_field(fields, tag)
    return field.value if field is not None else default
