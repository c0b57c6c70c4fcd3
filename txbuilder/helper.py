import hashlib

from Crypto.Hash import RIPEMD160


SIGHASH_ALL = 1
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
COIN = 100000000
MAX_MONEY = 21000000 * COIN


def int_to_byte(n):
    """Returns a single byte that corresponds to the integer"""
    if n > 255 or n < 0:
        raise ValueError(
            "integer greater than 255 or lower than 0 cannot be converted into a byte"
        )
    return bytes([n])


def big_endian_to_int(b):
    return int.from_bytes(b, "big")


def int_to_big_endian(n, length):
    return n.to_bytes(length, "big")


def little_endian_to_int(b):
    return int.from_bytes(b, "little")


def int_to_little_endian(n, length):
    return n.to_bytes(length, "little")


def sha256(s):
    return hashlib.sha256(s).digest()


def hash256(s):
    return sha256(sha256(s))


def hash160(s):
    # hashlib only offers ripemd160 when openssl still ships it
    return RIPEMD160.new(sha256(s)).digest()


def encode_base58(s):
    # leading zero bytes each become a '1'
    count = len(s) - len(s.lstrip(b"\x00"))
    num = big_endian_to_int(s)
    result = ""
    while num > 0:
        num, mod = divmod(num, 58)
        result = BASE58_ALPHABET[mod] + result
    return "1" * count + result


def encode_base58_checksum(raw):
    """Takes bytes and turns it into base58 encoding with checksum"""
    return encode_base58(raw + hash256(raw)[:4])


def raw_decode_base58(s):
    num = 0
    prefix = b""
    for c in s:
        if num == 0 and c == "1":
            prefix += b"\x00"
            continue
        if c not in BASE58_ALPHABET:
            raise ValueError(f"invalid base58 character: {c}")
        num = 58 * num + BASE58_ALPHABET.index(c)
    combined = prefix + num.to_bytes((num.bit_length() + 7) // 8, "big")
    checksum = combined[-4:]
    if hash256(combined[:-4])[:4] != checksum:
        raise RuntimeError(f"bad base58 checksum for {s}")
    return combined[:-4]


def decode_base58(s):
    """Returns the payload of a base58check string without its version byte"""
    return raw_decode_base58(s)[1:]


def read_varint(s):
    """reads a variable integer from a stream"""
    b = s.read(1)
    if len(b) != 1:
        raise IOError("stream has no bytes")
    i = b[0]
    if i == 0xFD:
        return little_endian_to_int(s.read(2))
    elif i == 0xFE:
        return little_endian_to_int(s.read(4))
    elif i == 0xFF:
        return little_endian_to_int(s.read(8))
    else:
        return i


def encode_varint(i):
    """encodes an integer as a varint"""
    if i < 0xFD:
        return bytes([i])
    elif i < 0x10000:
        return b"\xfd" + int_to_little_endian(i, 2)
    elif i < 0x100000000:
        return b"\xfe" + int_to_little_endian(i, 4)
    elif i < 0x10000000000000000:
        return b"\xff" + int_to_little_endian(i, 8)
    else:
        raise RuntimeError(f"integer too large: {i}")


def encode_varstr(b):
    """encodes bytes as a varstr"""
    return encode_varint(len(b)) + b


def check_amount(amount):
    """Raises unless amount is a valid number of satoshis"""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"amount must be an int of satoshis: {amount!r}")
    if amount < 0 or amount > MAX_MONEY:
        raise ValueError(f"amount out of range: {amount}")
    return amount
