from collections import namedtuple

from txbuilder.ecc import S256Point
from txbuilder.helper import int_to_byte, SIGHASH_ALL
from txbuilder.op import op_code_to_number, OP_0
from txbuilder.script import Script


MultiSigParameters = namedtuple("MultiSigParameters", ["signature_count", "points"])


class TransactionSignature:
    """A DER signature plus the sighash type it commits with"""

    def __init__(self, signature, hash_type=SIGHASH_ALL):
        self.signature = signature
        self.hash_type = hash_type

    def __repr__(self):
        return f"TransactionSignature({self.serialize().hex()})"

    def serialize(self):
        return self.signature.der() + int_to_byte(self.hash_type)


class ScriptTemplate:
    """A family of ScriptPubKeys.

    check tells whether a script belongs to the family, extract returns the
    parameters a signer needs (None when the script doesn't match) and
    generate_script_sig builds the ScriptSig satisfying it."""

    name = None

    def __repr__(self):
        return f"<{self.name} template>"

    def check(self, script):
        return self.extract(script) is not None

    def extract(self, script):
        raise NotImplementedError

    def generate_script_sig(self, *args):
        raise NotImplementedError


class PayToPubKeyHashTemplate(ScriptTemplate):
    name = "p2pkh"

    def extract(self, script):
        """Returns the hash160 being paid to"""
        if not script.is_p2pkh():
            return None
        return script.commands[2]

    def generate_script_sig(self, signature, sec):
        return Script([signature.serialize(), sec])


class PayToScriptHashTemplate(ScriptTemplate):
    name = "p2sh"

    def extract(self, script):
        """Returns the hash160 of the RedeemScript"""
        if not script.is_p2sh():
            return None
        return script.commands[1]

    def generate_script_sig(self, script_sig, redeem_script):
        """Appends the raw RedeemScript to the ScriptSig satisfying it"""
        return Script(script_sig.commands + [redeem_script.raw_serialize()])


class PayToPubKeyTemplate(ScriptTemplate):
    name = "p2pk"

    def extract(self, script):
        """Returns the point being paid to"""
        if not script.is_p2pk():
            return None
        try:
            return S256Point.parse(script.commands[0])
        except ValueError:
            return None

    def generate_script_sig(self, signature):
        return Script([signature.serialize()])


class PayToMultiSigTemplate(ScriptTemplate):
    name = "multisig"

    def extract(self, script):
        """Returns the signature count and the points, in script order"""
        if not script.is_multisig():
            return None
        try:
            points = [S256Point.parse(sec) for sec in script.commands[1:-2]]
        except ValueError:
            return None
        return MultiSigParameters(op_code_to_number(script.commands[0]), points)

    def generate_script_sig(self, signatures):
        # OP_CHECKMULTISIG consumes an extra element, hence the leading OP_0
        return Script([OP_0] + [signature.serialize() for signature in signatures])


PAY_TO_PUBKEY_HASH = PayToPubKeyHashTemplate()
PAY_TO_SCRIPT_HASH = PayToScriptHashTemplate()
PAY_TO_MULTISIG = PayToMultiSigTemplate()
PAY_TO_PUBKEY = PayToPubKeyTemplate()

# signing tries the templates in this order
TEMPLATES = (PAY_TO_PUBKEY_HASH, PAY_TO_SCRIPT_HASH, PAY_TO_MULTISIG, PAY_TO_PUBKEY)


def find_template(script):
    """Returns the first template script belongs to, or None"""
    for template in TEMPLATES:
        if template.check(script):
            return template
    return None
