import logging

from io import BytesIO

from txbuilder.helper import (
    encode_base58_checksum,
    encode_varstr,
    hash160,
    int_to_byte,
    int_to_little_endian,
    little_endian_to_int,
    raw_decode_base58,
    read_varint,
)
from txbuilder.op import (
    is_small_number_op,
    number_to_op_code,
    op_code_to_number,
    OP_CHECKMULTISIG,
    OP_CHECKSIG,
    OP_CODE_FUNCTIONS,
    OP_CODE_NAMES,
    OP_DUP,
    OP_EQUAL,
    OP_EQUALVERIFY,
    OP_HASH160,
    OP_PUSHDATA1,
    OP_PUSHDATA2,
    OP_PUSHDATA4,
    SIGNATURE_OPS,
)


logger = logging.getLogger(__name__)

MAX_SCRIPT_ELEMENT_SIZE = 520

P2PKH_PREFIXES = {"mainnet": b"\x00", "testnet": b"\x6f", "signet": b"\x6f"}
P2SH_PREFIXES = {"mainnet": b"\x05", "testnet": b"\xc4", "signet": b"\xc4"}


class Script:
    def __init__(self, commands=None):
        if commands is None:
            self.commands = []
        else:
            self.commands = commands

    def __repr__(self):
        result = []
        for command in self.commands:
            if type(command) == int:
                result.append(OP_CODE_NAMES.get(command, f"OP_[{command}]"))
            else:
                result.append(command.hex())
        return " ".join(result)

    def __eq__(self, other):
        if not isinstance(other, Script):
            return NotImplemented
        return self.commands == other.commands

    def __hash__(self):
        return hash(self.raw_serialize())

    def __add__(self, other):
        return Script(self.commands + other.commands)

    @classmethod
    def parse(cls, s):
        # get the length of the entire field
        length = read_varint(s)
        commands = []
        count = 0
        while count < length:
            current = s.read(1)
            if len(current) != 1:
                raise RuntimeError("parsing script failed")
            count += 1
            current_byte = current[0]
            if 1 <= current_byte <= 75:
                data_length = current_byte
            elif current_byte == OP_PUSHDATA1:
                data_length = little_endian_to_int(s.read(1))
                count += 1
            elif current_byte == OP_PUSHDATA2:
                data_length = little_endian_to_int(s.read(2))
                count += 2
            elif current_byte == OP_PUSHDATA4:
                data_length = little_endian_to_int(s.read(4))
                count += 4
            else:
                # we have an op code
                commands.append(current_byte)
                continue
            data = s.read(data_length)
            if len(data) != data_length:
                raise RuntimeError("parsing script failed")
            commands.append(data)
            count += data_length
        if count != length:
            raise RuntimeError("parsing script failed")
        return cls(commands)

    @classmethod
    def convert(cls, raw_script):
        """Parses a raw serialization (no length prefix)"""
        return cls.parse(BytesIO(encode_varstr(raw_script)))

    def raw_serialize(self):
        result = b""
        for command in self.commands:
            if type(command) == int:
                result += int_to_byte(command)
                continue
            length = len(command)
            if length <= 75:
                result += int_to_byte(length)
            elif length < 0x100:
                result += int_to_byte(OP_PUSHDATA1) + int_to_byte(length)
            elif length <= MAX_SCRIPT_ELEMENT_SIZE:
                result += int_to_byte(OP_PUSHDATA2) + int_to_little_endian(length, 2)
            else:
                raise ValueError("too long a command")
            result += command
        return result

    def serialize(self):
        return encode_varstr(self.raw_serialize())

    def evaluate(self, stack, sig_hash=None):
        """Runs the commands against the stack in place. sig_hash takes a
        hash type and returns the integer a signature must commit to.
        Returns whether every command succeeded."""
        for command in self.commands:
            if type(command) != int:
                if len(command) > MAX_SCRIPT_ELEMENT_SIZE:
                    logger.debug("push exceeds %d bytes", MAX_SCRIPT_ELEMENT_SIZE)
                    return False
                stack.append(command)
                continue
            operation = OP_CODE_FUNCTIONS.get(command)
            name = OP_CODE_NAMES.get(command, f"OP_[{command}]")
            if operation is None:
                logger.debug("unsupported op: %s", name)
                return False
            if command in SIGNATURE_OPS:
                if sig_hash is None:
                    logger.debug("%s needs a transaction to check against", name)
                    return False
                ok = operation(stack, sig_hash)
            else:
                ok = operation(stack)
            if not ok:
                logger.debug("bad op: %s", name)
                return False
        return True

    def is_push_only(self):
        return all(
            type(command) == bytes or is_small_number_op(command)
            for command in self.commands
        )

    def is_p2pkh(self):
        """Returns whether the script follows the
        OP_DUP OP_HASH160 <20 byte hash> OP_EQUALVERIFY OP_CHECKSIG pattern."""
        return (
            len(self.commands) == 5
            and self.commands[0] == OP_DUP
            and self.commands[1] == OP_HASH160
            and type(self.commands[2]) == bytes
            and len(self.commands[2]) == 20
            and self.commands[3] == OP_EQUALVERIFY
            and self.commands[4] == OP_CHECKSIG
        )

    def is_p2sh(self):
        """Returns whether the script follows the
        OP_HASH160 <20 byte hash> OP_EQUAL pattern."""
        return (
            len(self.commands) == 3
            and self.commands[0] == OP_HASH160
            and type(self.commands[1]) == bytes
            and len(self.commands[1]) == 20
            and self.commands[2] == OP_EQUAL
        )

    def is_p2pk(self):
        """Returns whether the script follows the <sec pubkey> OP_CHECKSIG pattern."""
        return (
            len(self.commands) == 2
            and type(self.commands[0]) == bytes
            and is_sec_pubkey(self.commands[0])
            and self.commands[1] == OP_CHECKSIG
        )

    def is_multisig(self):
        """Returns whether the script follows the
        OP_m <sec pubkey> ... <sec pubkey> OP_n OP_CHECKMULTISIG pattern."""
        if len(self.commands) < 4 or self.commands[-1] != OP_CHECKMULTISIG:
            return False
        first, second_to_last = self.commands[0], self.commands[-2]
        if not (is_small_number_op(first) and is_small_number_op(second_to_last)):
            return False
        quorum_m = op_code_to_number(first)
        quorum_n = op_code_to_number(second_to_last)
        pubkeys = self.commands[1:-2]
        return (
            1 <= quorum_m <= quorum_n
            and len(pubkeys) == quorum_n
            and all(type(c) == bytes and is_sec_pubkey(c) for c in pubkeys)
        )


def is_sec_pubkey(element):
    if len(element) == 33:
        return element[0] in (2, 3)
    if len(element) == 65:
        return element[0] == 4
    return False


class ScriptPubKey(Script):
    """Represents a ScriptPubKey in a transaction"""

    @classmethod
    def parse(cls, s):
        return cls.typed(Script.parse(s))

    @staticmethod
    def typed(script):
        """Returns the most specific ScriptPubKey class for a script"""
        if script.is_p2pkh():
            return P2PKHScriptPubKey(script.commands[2])
        elif script.is_p2sh():
            return P2SHScriptPubKey(script.commands[1])
        elif script.is_p2pk():
            return P2PKScriptPubKey(script.commands[0])
        elif script.is_multisig():
            return MultiSigScriptPubKey(
                op_code_to_number(script.commands[0]), script.commands[1:-2]
            )
        return ScriptPubKey(script.commands)

    def script_pubkey(self):
        return self


class P2PKHScriptPubKey(ScriptPubKey):
    def __init__(self, h160):
        if type(h160) != bytes:
            raise TypeError("To initialize P2PKHScriptPubKey, a hash160 is needed")
        super().__init__([OP_DUP, OP_HASH160, h160, OP_EQUALVERIFY, OP_CHECKSIG])

    def hash160(self):
        return self.commands[2]

    def address(self, network="mainnet"):
        return encode_base58_checksum(P2PKH_PREFIXES[network] + self.hash160())


class P2SHScriptPubKey(ScriptPubKey):
    def __init__(self, h160):
        if type(h160) != bytes:
            raise TypeError("To initialize P2SHScriptPubKey, a hash160 is needed")
        super().__init__([OP_HASH160, h160, OP_EQUAL])

    def hash160(self):
        return self.commands[1]

    def address(self, network="mainnet"):
        return encode_base58_checksum(P2SH_PREFIXES[network] + self.hash160())


class P2PKScriptPubKey(ScriptPubKey):
    def __init__(self, sec):
        if type(sec) != bytes:
            raise TypeError("To initialize P2PKScriptPubKey, a sec pubkey is needed")
        super().__init__([sec, OP_CHECKSIG])

    def sec(self):
        return self.commands[0]


class MultiSigScriptPubKey(ScriptPubKey):
    """Bare m-of-n OP_CHECKMULTISIG, pubkeys kept in the given order"""

    def __init__(self, quorum_m, sec_pubkeys):
        sec_pubkeys = list(sec_pubkeys)
        if quorum_m < 1 or quorum_m > len(sec_pubkeys) or len(sec_pubkeys) > 16:
            raise ValueError(f"Invalid m-of-n: {quorum_m}-of-{len(sec_pubkeys)}")
        super().__init__(
            [
                number_to_op_code(quorum_m),
                *sec_pubkeys,
                number_to_op_code(len(sec_pubkeys)),
                OP_CHECKMULTISIG,
            ]
        )

    def get_quorum(self):
        """Return the m-of-n of this multisig, as in 2-of-3 or 3-of-5"""
        return op_code_to_number(self.commands[0]), len(self.commands) - 3

    def signing_pubkeys(self):
        return self.commands[1:-2]


class RedeemScript(Script):
    """Subclass that represents a RedeemScript for p2sh"""

    def hash160(self):
        """Returns the hash160 of the serialization of the RedeemScript"""
        return hash160(self.raw_serialize())

    def script_pubkey(self):
        """Returns the ScriptPubKey that this RedeemScript corresponds to"""
        return P2SHScriptPubKey(self.hash160())

    def address(self, network="mainnet"):
        """Returns the p2sh address for this RedeemScript"""
        return self.script_pubkey().address(network)

    @classmethod
    def create_p2sh_multisig(cls, quorum_m, pubkey_hexes, sort_keys=True):
        """
        Create a p2sh RedeemScript using a threshold (quorum_m) of public keys (in hex).

        To use a custom order of pubkeys, feed them in order and set sort_keys=False
        """
        if type(quorum_m) is not int:
            raise ValueError(f"quorum_m must be of type int: {quorum_m}")
        if sort_keys:
            pubkey_hexes = sorted(pubkey_hexes)
        multisig = MultiSigScriptPubKey(
            quorum_m, [bytes.fromhex(pubkey_hex) for pubkey_hex in pubkey_hexes]
        )
        return cls(multisig.commands)


def address_to_script_pubkey(s, network=None):
    """Returns the ScriptPubKey for a base58 address, optionally requiring
    the address to belong to network"""
    raw = raw_decode_base58(s)
    if len(raw) != 21:
        raise ValueError(f"unknown type of address: {s}")
    prefix, h160 = raw[:1], raw[1:]
    if prefix in P2PKH_PREFIXES.values():
        prefixes, script_pubkey = P2PKH_PREFIXES, P2PKHScriptPubKey(h160)
    elif prefix in P2SH_PREFIXES.values():
        prefixes, script_pubkey = P2SH_PREFIXES, P2SHScriptPubKey(h160)
    else:
        raise ValueError(f"unknown type of address: {s}")
    if network is not None and prefixes[network] != prefix:
        raise ValueError(f"{s} is not a {network} address")
    return script_pubkey


def destination_to_script_pubkey(destination, network=None):
    """A destination is a base58 address, a Script, or anything with a
    script_pubkey() method (points, RedeemScripts)"""
    if isinstance(destination, str):
        return address_to_script_pubkey(destination, network=network)
    if isinstance(destination, ScriptPubKey):
        return destination
    if hasattr(destination, "script_pubkey"):
        return destination.script_pubkey()
    if isinstance(destination, Script):
        return ScriptPubKey.typed(destination)
    raise TypeError(f"cannot pay to {destination!r}")


def cast_to_bool(element):
    for i, b in enumerate(element):
        if b != 0:
            # negative zero is false
            return not (i == len(element) - 1 and b == 0x80)
    return False


def verify_script(script_sig, script_pubkey, tx_obj, input_index):
    """Returns whether script_sig satisfies script_pubkey for the input at
    input_index of tx_obj, following the p2sh rule when script_pubkey is p2sh."""

    def sig_hash_for(script_code):
        def sig_hash(hash_type):
            return tx_obj.sig_hash(input_index, script_code, hash_type)

        return sig_hash

    if not script_sig.is_push_only():
        logger.debug("ScriptSig of input %d is not push only", input_index)
        return False
    stack = []
    if not script_sig.evaluate(stack):
        return False
    # the p2sh rule needs the stack as the ScriptSig left it
    p2sh_stack = stack[:]
    if not script_pubkey.evaluate(stack, sig_hash_for(script_pubkey)):
        return False
    if len(stack) == 0 or not cast_to_bool(stack[-1]):
        return False
    if not script_pubkey.is_p2sh():
        return True
    if len(p2sh_stack) == 0:
        return False
    try:
        redeem_script = RedeemScript.convert(p2sh_stack.pop())
    except (RuntimeError, ValueError) as e:
        logger.debug("unparseable RedeemScript: %s", e)
        return False
    if not redeem_script.evaluate(p2sh_stack, sig_hash_for(redeem_script)):
        return False
    return len(p2sh_stack) > 0 and cast_to_bool(p2sh_stack[-1])
