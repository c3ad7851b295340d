# Purpose: CRC-16/CCITT-FALSE checksum used in tag 63 of EMV QR payloads.

POLYNOMIAL = 0x1021
INITIAL_VALUE = 0xFFFF
CRC_TAG_HEADER = "6304"


def _shift_byte(crc):
    """Runs the eight MSB-first shift/xor steps for the byte sitting in the high half of crc."""
    for _ in range(8):
        if crc & 0x8000:
            crc = (crc << 1) ^ POLYNOMIAL
        else:
            crc = crc << 1
        crc &= 0xFFFF
    return crc


def crc16_bitwise(data, crc=INITIAL_VALUE):
    if isinstance(data, str):
        data = data.encode("utf-8")
    for byte in data:
        crc = _shift_byte(crc ^ (byte << 8))
    return crc


def _build_table():
    return tuple(_shift_byte(byte << 8) for byte in range(256))


CRC16_TABLE = _build_table()


def crc16(data, crc=INITIAL_VALUE):
    """Table-driven CRC; must agree with crc16_bitwise for every input."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    for byte in data:
        crc = ((crc << 8) ^ CRC16_TABLE[((crc >> 8) ^ byte) & 0xFF]) & 0xFFFF
    return crc


def compute_checksum(domain):
    """
    Returns the 4 uppercase hex digits for tag 63.

    `domain` is everything before the checksum value, so it must already end with "6304".
    """
    return f"{crc16(domain):04X}"


def append_checksum(prefix):
    domain = prefix + CRC_TAG_HEADER
    return domain + compute_checksum(domain)


def checksum_domain(payload):
    """Splits a complete payload into (domain, carried checksum). Tag 63 must be last."""
    if len(payload) < 8 or payload[-8:-4] != CRC_TAG_HEADER:
        return None, None
    return payload[:-4], payload[-4:]
