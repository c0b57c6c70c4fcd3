from io import BytesIO

from txbuilder.helper import (
    big_endian_to_int,
    encode_varint,
    hash256,
    int_to_little_endian,
    little_endian_to_int,
    read_varint,
    SIGHASH_ALL,
)
from txbuilder.script import Script, ScriptPubKey


class OutPoint:
    """Reference to an output of a previous transaction"""

    def __init__(self, prev_tx, prev_index):
        if type(prev_tx) != bytes or len(prev_tx) != 32:
            raise ValueError("prev_tx must be a 32 byte hash")
        if prev_index < 0 or prev_index > 0xFFFFFFFF:
            raise ValueError(f"prev_index out of range: {prev_index}")
        self.prev_tx = prev_tx
        self.prev_index = prev_index

    def __repr__(self):
        return f"{self.prev_tx.hex()}:{self.prev_index}"

    def __eq__(self, other):
        if not isinstance(other, OutPoint):
            return NotImplemented
        return self.prev_tx == other.prev_tx and self.prev_index == other.prev_index

    def __hash__(self):
        return hash((self.prev_tx, self.prev_index))

    @classmethod
    def parse(cls, s):
        prev_tx = s.read(32)[::-1]
        prev_index = little_endian_to_int(s.read(4))
        return cls(prev_tx, prev_index)

    def serialize(self):
        return self.prev_tx[::-1] + int_to_little_endian(self.prev_index, 4)


class Tx:
    def __init__(self, version=1, tx_ins=None, tx_outs=None, locktime=0):
        self.version = version
        self.tx_ins = [] if tx_ins is None else tx_ins
        self.tx_outs = [] if tx_outs is None else tx_outs
        self.locktime = locktime

    def __repr__(self):
        tx_ins = "\n".join([str(txi) for txi in self.tx_ins])
        tx_outs = "\n".join([str(txo) for txo in self.tx_outs])
        return f"""
tx: {self.id()}
version: {self.version}
locktime: {self.locktime}
tx_ins:\n{tx_ins}
tx_outs:\n{tx_outs}
"""

    def id(self):
        """Human-readable hexadecimal of the transaction hash"""
        return self.hash().hex()

    def hash(self):
        """Binary hash of the serialization"""
        return hash256(self.serialize())[::-1]

    @classmethod
    def parse_hex(cls, s):
        return cls.parse(BytesIO(bytes.fromhex(s)))

    @classmethod
    def parse(cls, s):
        """Takes a byte stream and parses a legacy transaction"""
        version = little_endian_to_int(s.read(4))
        num_inputs = read_varint(s)
        if num_inputs == 0:
            raise RuntimeError("segwit transactions are not supported")
        inputs = [TxIn.parse(s) for _ in range(num_inputs)]
        num_outputs = read_varint(s)
        outputs = [TxOut.parse(s) for _ in range(num_outputs)]
        locktime = little_endian_to_int(s.read(4))
        return cls(version, inputs, outputs, locktime)

    def serialize(self):
        result = int_to_little_endian(self.version, 4)
        result += encode_varint(len(self.tx_ins))
        for tx_in in self.tx_ins:
            result += tx_in.serialize()
        result += encode_varint(len(self.tx_outs))
        for tx_out in self.tx_outs:
            result += tx_out.serialize()
        result += int_to_little_endian(self.locktime, 4)
        return result

    def total_out(self):
        return sum(tx_out.amount for tx_out in self.tx_outs)

    def sig_hash(self, input_index, script_code, hash_type=SIGHASH_ALL):
        """Returns the integer representation of the legacy hash that needs
        to get signed for index input_index. script_code is the script being
        satisfied: the previous ScriptPubKey, or the RedeemScript for p2sh."""
        if hash_type != SIGHASH_ALL:
            raise ValueError(f"only SIGHASH_ALL is supported, got {hash_type}")
        if input_index < 0 or input_index >= len(self.tx_ins):
            raise IndexError(f"no input at index {input_index}")
        s = int_to_little_endian(self.version, 4)
        s += encode_varint(len(self.tx_ins))
        for i, tx_in in enumerate(self.tx_ins):
            # only the signed input carries a script
            if i == input_index:
                script_sig = script_code
            else:
                script_sig = None
            s += TxIn(tx_in.outpoint, script_sig, tx_in.sequence).serialize()
        s += encode_varint(len(self.tx_outs))
        for tx_out in self.tx_outs:
            s += tx_out.serialize()
        s += int_to_little_endian(self.locktime, 4)
        s += int_to_little_endian(hash_type, 4)
        return big_endian_to_int(hash256(s))


class TxIn:
    def __init__(self, outpoint, script_sig=None, sequence=0xFFFFFFFF):
        self.outpoint = outpoint
        if script_sig is None:
            self.script_sig = Script()
        else:
            self.script_sig = script_sig
        self.sequence = sequence

    def __repr__(self):
        return f"{self.outpoint!r} {self.script_sig!r}"

    @property
    def prev_tx(self):
        return self.outpoint.prev_tx

    @property
    def prev_index(self):
        return self.outpoint.prev_index

    @classmethod
    def parse(cls, s):
        outpoint = OutPoint.parse(s)
        script_sig = Script.parse(s)
        sequence = little_endian_to_int(s.read(4))
        return cls(outpoint, script_sig, sequence)

    def serialize(self):
        result = self.outpoint.serialize()
        result += self.script_sig.serialize()
        result += int_to_little_endian(self.sequence, 4)
        return result


class TxOut:
    def __init__(self, amount, script_pubkey):
        self.amount = amount
        self.script_pubkey = script_pubkey

    def __repr__(self):
        return f"{self.amount}:{self.script_pubkey!r}"

    def __eq__(self, other):
        if not isinstance(other, TxOut):
            return NotImplemented
        return (
            self.amount == other.amount and self.script_pubkey == other.script_pubkey
        )

    def __hash__(self):
        return hash((self.amount, self.script_pubkey))

    def serialize(self):
        result = int_to_little_endian(self.amount, 8)
        result += self.script_pubkey.serialize()
        return result

    @classmethod
    def parse(cls, s):
        amount = little_endian_to_int(s.read(8))
        script_pubkey = ScriptPubKey.parse(s)
        return cls(amount, script_pubkey)
