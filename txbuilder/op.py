import logging

from txbuilder.ecc import S256Point, Signature
from txbuilder.helper import hash160, hash256, sha256


logger = logging.getLogger(__name__)


OP_0 = 0
OP_PUSHDATA1 = 76
OP_PUSHDATA2 = 77
OP_PUSHDATA4 = 78
OP_1NEGATE = 79
OP_1 = 81
OP_16 = 96
OP_NOP = 97
OP_VERIFY = 105
OP_RETURN = 106
OP_DROP = 117
OP_DUP = 118
OP_EQUAL = 135
OP_EQUALVERIFY = 136
OP_SHA256 = 168
OP_HASH160 = 169
OP_HASH256 = 170
OP_CHECKSIG = 172
OP_CHECKSIGVERIFY = 173
OP_CHECKMULTISIG = 174
OP_CHECKMULTISIGVERIFY = 175

# signature operations need the sighash of the input being evaluated
SIGNATURE_OPS = (
    OP_CHECKSIG,
    OP_CHECKSIGVERIFY,
    OP_CHECKMULTISIG,
    OP_CHECKMULTISIGVERIFY,
)

MAX_PUBKEYS_PER_MULTISIG = 20


def number_to_op_code(n):
    """Returns the OP code pushing a small number (-1 through 16)"""
    if n < -1 or n > 16:
        raise ValueError("Not a valid OP code")
    if n == 0:
        return OP_0
    return n + 80


def op_code_to_number(op_code):
    """Returns the n for a particular small number OP code"""
    if op_code == OP_0:
        return 0
    if op_code == OP_1NEGATE or OP_1 <= op_code <= OP_16:
        return op_code - 80
    raise ValueError("Not a valid OP code")


def is_small_number_op(command):
    return type(command) == int and (
        command in (OP_0, OP_1NEGATE) or OP_1 <= command <= OP_16
    )


def encode_num(num):
    if num == 0:
        return b""
    abs_num = abs(num)
    negative = num < 0
    result = bytearray()
    while abs_num:
        result.append(abs_num & 0xFF)
        abs_num >>= 8
    # the top bit of the last byte is the sign
    if result[-1] & 0x80:
        if negative:
            result.append(0x80)
        else:
            result.append(0)
    elif negative:
        result[-1] |= 0x80
    return bytes(result)


def decode_num(element):
    if element == b"":
        return 0
    big_endian = element[::-1]
    if big_endian[0] & 0x80:
        negative = True
        result = big_endian[0] & 0x7F
    else:
        negative = False
        result = big_endian[0]
    for c in big_endian[1:]:
        result <<= 8
        result += c
    if negative:
        return -result
    return result


def _op_push_number(n):
    def op_push(stack):
        stack.append(encode_num(n))
        return True

    op_push.__name__ = f"op_{n}" if n >= 0 else "op_1negate"
    return op_push


def op_nop(stack):
    return True


def op_verify(stack):
    if len(stack) < 1:
        return False
    element = stack.pop()
    if decode_num(element) == 0:
        return False
    return True


def op_return(stack):
    return False


def op_drop(stack):
    if len(stack) < 1:
        return False
    stack.pop()
    return True


def op_dup(stack):
    if len(stack) < 1:
        return False
    stack.append(stack[-1])
    return True


def op_equal(stack):
    if len(stack) < 2:
        return False
    element1 = stack.pop()
    element2 = stack.pop()
    if element1 == element2:
        stack.append(encode_num(1))
    else:
        stack.append(encode_num(0))
    return True


def op_equalverify(stack):
    return op_equal(stack) and op_verify(stack)


def op_sha256(stack):
    if len(stack) < 1:
        return False
    stack.append(sha256(stack.pop()))
    return True


def op_hash160(stack):
    if len(stack) < 1:
        return False
    stack.append(hash160(stack.pop()))
    return True


def op_hash256(stack):
    if len(stack) < 1:
        return False
    stack.append(hash256(stack.pop()))
    return True


def check_signature(sig_hash, sig_with_type, sec_pubkey):
    """Whether a pushed signature (DER + hash type byte) is valid for the
    sec pubkey. sig_hash maps a hash type to the integer being signed."""
    if len(sig_with_type) == 0:
        return False
    der, hash_type = sig_with_type[:-1], sig_with_type[-1]
    try:
        point = S256Point.parse(sec_pubkey)
        sig = Signature.parse(der)
        z = sig_hash(hash_type)
    except (ValueError, RuntimeError) as e:
        logger.debug("unusable signature or pubkey: %s", e)
        return False
    return point.verify(z, sig)


def op_checksig(stack, sig_hash):
    if len(stack) < 2:
        return False
    sec_pubkey = stack.pop()
    sig_with_type = stack.pop()
    if check_signature(sig_hash, sig_with_type, sec_pubkey):
        stack.append(encode_num(1))
    else:
        stack.append(encode_num(0))
    return True


def op_checksigverify(stack, sig_hash):
    return op_checksig(stack, sig_hash) and op_verify(stack)


def op_checkmultisig(stack, sig_hash):
    if len(stack) < 1:
        return False
    n = decode_num(stack.pop())
    if n < 0 or n > MAX_PUBKEYS_PER_MULTISIG or len(stack) < n + 1:
        return False
    # pubkeys come off the stack last first
    sec_pubkeys = [stack.pop() for _ in range(n)][::-1]
    m = decode_num(stack.pop())
    if m < 0 or m > n or len(stack) < m + 1:
        return False
    signatures = [stack.pop() for _ in range(m)][::-1]
    # OP_CHECKMULTISIG pops one element too many
    stack.pop()
    # each signature must match a pubkey later than the previous match
    success = True
    key_index = 0
    for signature in signatures:
        while key_index < len(sec_pubkeys):
            sec_pubkey = sec_pubkeys[key_index]
            key_index += 1
            if check_signature(sig_hash, signature, sec_pubkey):
                break
        else:
            logger.debug("signatures no good or not in right order")
            success = False
            break
    stack.append(encode_num(1 if success else 0))
    return True


def op_checkmultisigverify(stack, sig_hash):
    return op_checkmultisig(stack, sig_hash) and op_verify(stack)


OP_CODE_FUNCTIONS = {
    OP_0: _op_push_number(0),
    OP_1NEGATE: _op_push_number(-1),
    OP_NOP: op_nop,
    OP_VERIFY: op_verify,
    OP_RETURN: op_return,
    OP_DROP: op_drop,
    OP_DUP: op_dup,
    OP_EQUAL: op_equal,
    OP_EQUALVERIFY: op_equalverify,
    OP_SHA256: op_sha256,
    OP_HASH160: op_hash160,
    OP_HASH256: op_hash256,
    OP_CHECKSIG: op_checksig,
    OP_CHECKSIGVERIFY: op_checksigverify,
    OP_CHECKMULTISIG: op_checkmultisig,
    OP_CHECKMULTISIGVERIFY: op_checkmultisigverify,
}
OP_CODE_FUNCTIONS.update(
    {number_to_op_code(n): _op_push_number(n) for n in range(1, 17)}
)

OP_CODE_NAMES = {
    OP_0: "OP_0",
    OP_PUSHDATA1: "OP_PUSHDATA1",
    OP_PUSHDATA2: "OP_PUSHDATA2",
    OP_PUSHDATA4: "OP_PUSHDATA4",
    OP_1NEGATE: "OP_1NEGATE",
    OP_NOP: "OP_NOP",
    OP_VERIFY: "OP_VERIFY",
    OP_RETURN: "OP_RETURN",
    OP_DROP: "OP_DROP",
    OP_DUP: "OP_DUP",
    OP_EQUAL: "OP_EQUAL",
    OP_EQUALVERIFY: "OP_EQUALVERIFY",
    OP_SHA256: "OP_SHA256",
    OP_HASH160: "OP_HASH160",
    OP_HASH256: "OP_HASH256",
    OP_CHECKSIG: "OP_CHECKSIG",
    OP_CHECKSIGVERIFY: "OP_CHECKSIGVERIFY",
    OP_CHECKMULTISIG: "OP_CHECKMULTISIG",
    OP_CHECKMULTISIGVERIFY: "OP_CHECKMULTISIGVERIFY",
}
OP_CODE_NAMES.update({number_to_op_code(n): f"OP_{n}" for n in range(1, 17)})
