from io import BytesIO

import hmac
import hashlib

from txbuilder.helper import (
    big_endian_to_int,
    encode_base58_checksum,
    hash160,
    int_to_big_endian,
    raw_decode_base58,
)


A = 0
B = 7
P = 2 ** 256 - 2 ** 32 - 977
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


class S256Point:
    """A point on secp256k1. x and y are plain integers mod P,
    (None, None) is the point at infinity."""

    def __init__(self, x, y):
        self.x = x
        self.y = y
        if self.x is None and self.y is None:
            return
        if (self.y * self.y - self.x ** 3 - B) % P != 0:
            raise ValueError(f"({x}, {y}) is not on the curve")

    def __eq__(self, other):
        if not isinstance(other, S256Point):
            return NotImplemented
        return self.x == other.x and self.y == other.y

    def __hash__(self):
        return hash((self.x, self.y))

    def __repr__(self):
        if self.x is None:
            return "S256Point(infinity)"
        return f"S256Point({self.x:x},{self.y:x})"

    def __add__(self, other):
        if self.x is None:
            return other
        if other.x is None:
            return self
        if self.x == other.x and (self.y + other.y) % P == 0:
            return self.__class__(None, None)
        if self.x == other.x:
            # tangent line for doubling
            s = 3 * self.x * self.x * pow(2 * self.y, P - 2, P) % P
        else:
            s = (other.y - self.y) * pow(other.x - self.x, P - 2, P) % P
        x = (s * s - self.x - other.x) % P
        y = (s * (self.x - x) - self.y) % P
        return self.__class__(x, y)

    def __rmul__(self, coefficient):
        coef = coefficient % N
        current = self
        result = self.__class__(None, None)
        while coef:
            if coef & 1:
                result += current
            current += current
            coef >>= 1
        return result

    def sec(self, compressed=True):
        """returns the binary version of the sec format, NOT hex"""
        x = int_to_big_endian(self.x, 32)
        if compressed:
            if self.y % 2 == 0:
                return b"\x02" + x
            else:
                return b"\x03" + x
        return b"\x04" + x + int_to_big_endian(self.y, 32)

    def hash160(self, compressed=True):
        return hash160(self.sec(compressed))

    def p2pkh_script(self, compressed=True):
        """Returns the p2pkh ScriptPubKey paying to this point"""
        # avoid circular dependency
        from txbuilder.script import P2PKHScriptPubKey

        return P2PKHScriptPubKey(self.hash160(compressed))

    def p2pk_script(self, compressed=True):
        """Returns the bare p2pk ScriptPubKey paying to this point"""
        # avoid circular dependency
        from txbuilder.script import P2PKScriptPubKey

        return P2PKScriptPubKey(self.sec(compressed))

    def script_pubkey(self):
        return self.p2pkh_script()

    def address(self, compressed=True, network="mainnet"):
        """Returns the p2pkh address string"""
        return self.p2pkh_script(compressed).address(network)

    def verify(self, z, sig):
        if not (1 <= sig.r < N and 1 <= sig.s < N):
            return False
        s_inv = pow(sig.s, N - 2, N)
        u = z * s_inv % N
        v = sig.r * s_inv % N
        total = u * G + v * self
        if total.x is None:
            return False
        return total.x % N == sig.r

    @classmethod
    def parse(cls, sec_bin):
        """returns a Point object from a sec binary (not hex)"""
        if len(sec_bin) == 65 and sec_bin[0] == 4:
            x = big_endian_to_int(sec_bin[1:33])
            y = big_endian_to_int(sec_bin[33:65])
            return cls(x, y)
        if len(sec_bin) != 33 or sec_bin[0] not in (2, 3):
            raise ValueError(f"not a sec pubkey: {sec_bin.hex()}")
        x = big_endian_to_int(sec_bin[1:])
        # y^2 = x^3 + 7, P % 4 == 3 so the square root is a single pow
        beta = pow(x ** 3 + B, (P + 1) // 4, P)
        if (beta % 2 == 0) == (sec_bin[0] == 2):
            return cls(x, beta)
        return cls(x, P - beta)


G = S256Point(
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)


class Signature:
    def __init__(self, r, s):
        self.r = r
        self.s = s

    def __repr__(self):
        return f"Signature({self.r:x},{self.s:x})"

    def __eq__(self, other):
        return self.r == other.r and self.s == other.s

    @staticmethod
    def _der_int(n):
        nbin = int_to_big_endian(n, 32).lstrip(b"\x00")
        # a high bit would read as negative
        if nbin[0] & 0x80:
            nbin = b"\x00" + nbin
        return bytes([2, len(nbin)]) + nbin

    def der(self):
        result = self._der_int(self.r) + self._der_int(self.s)
        return bytes([0x30, len(result)]) + result

    @classmethod
    def parse(cls, signature_bin):
        s = BytesIO(signature_bin)
        if s.read(1) != b"\x30":
            raise RuntimeError("Bad Signature")
        length = s.read(1)[0]
        if length + 2 != len(signature_bin):
            raise RuntimeError("Bad Signature Length")
        if s.read(1) != b"\x02":
            raise RuntimeError("Bad Signature")
        rlength = s.read(1)[0]
        r = big_endian_to_int(s.read(rlength))
        if s.read(1) != b"\x02":
            raise RuntimeError("Bad Signature")
        slength = s.read(1)[0]
        s = big_endian_to_int(s.read(slength))
        if len(signature_bin) != 6 + rlength + slength:
            raise RuntimeError("Signature too long")
        return cls(r, s)


class PrivateKey:
    def __init__(self, secret, network="mainnet", compressed=True):
        if not 1 <= secret < N:
            raise ValueError("secret out of range")
        self.secret = secret
        self.point = secret * G
        self.network = network
        self.compressed = compressed

    def __repr__(self):
        return f"PrivateKey({self.point.sec(self.compressed).hex()})"

    def hex(self):
        return f"{self.secret:064x}"

    def sec(self):
        """The pubkey serialization this key signs with"""
        return self.point.sec(compressed=self.compressed)

    def hash160(self):
        return self.point.hash160(compressed=self.compressed)

    def address(self):
        return self.point.address(compressed=self.compressed, network=self.network)

    def sign(self, z):
        k = self.deterministic_k(z)
        r = (k * G).x
        k_inv = pow(k, N - 2, N)
        s = (z + r * self.secret) * k_inv % N
        # low-s
        if s > N // 2:
            s = N - s
        return Signature(r, s)

    def deterministic_k(self, z):
        """RFC6979 nonce"""
        k = b"\x00" * 32
        v = b"\x01" * 32
        if z > N:
            z -= N
        z_bytes = int_to_big_endian(z, 32)
        secret_bytes = int_to_big_endian(self.secret, 32)
        s256 = hashlib.sha256
        k = hmac.new(k, v + b"\x00" + secret_bytes + z_bytes, s256).digest()
        v = hmac.new(k, v, s256).digest()
        k = hmac.new(k, v + b"\x01" + secret_bytes + z_bytes, s256).digest()
        v = hmac.new(k, v, s256).digest()
        while True:
            v = hmac.new(k, v, s256).digest()
            candidate = big_endian_to_int(v)
            if candidate >= 1 and candidate < N:
                return candidate
            k = hmac.new(k, v + b"\x00", s256).digest()
            v = hmac.new(k, v, s256).digest()

    def wif(self):
        secret_bytes = int_to_big_endian(self.secret, 32)
        if self.network == "mainnet":
            prefix = b"\x80"
        else:
            prefix = b"\xef"
        suffix = b"\x01" if self.compressed else b""
        return encode_base58_checksum(prefix + secret_bytes + suffix)

    @classmethod
    def parse(cls, wif):
        """Converts WIF to a PrivateKey object"""
        raw = raw_decode_base58(wif)
        if len(raw) == 34:
            if raw[-1] != 1:
                raise ValueError("Invalid WIF")
            compressed = True
            raw = raw[:-1]
        elif len(raw) == 33:
            compressed = False
        else:
            raise ValueError("Invalid WIF")
        if raw[0] == 0xEF:
            network = "testnet"
        elif raw[0] == 0x80:
            network = "mainnet"
        else:
            raise ValueError("Invalid WIF")
        return cls(big_endian_to_int(raw[1:]), network=network, compressed=compressed)
