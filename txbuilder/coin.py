from txbuilder.script import RedeemScript, Script
from txbuilder.tx import OutPoint, TxOut


class Coin:
    """An unspent output the builder may fund a transaction with"""

    def __init__(self, outpoint, tx_out):
        if not isinstance(outpoint, OutPoint):
            raise TypeError(f"outpoint must be an OutPoint: {outpoint!r}")
        if not isinstance(tx_out, TxOut):
            raise TypeError(f"tx_out must be a TxOut: {tx_out!r}")
        self.outpoint = outpoint
        self.tx_out = tx_out

    def __repr__(self):
        return f"{self.__class__.__name__}({self.outpoint!r}, {self.amount})"

    def __eq__(self, other):
        if not isinstance(other, Coin):
            return NotImplemented
        return self.outpoint == other.outpoint and self.tx_out == other.tx_out

    def __hash__(self):
        return hash(self.outpoint)

    @classmethod
    def from_tx(cls, tx_obj, output_index):
        """The coin for output output_index of tx_obj"""
        return cls(OutPoint(tx_obj.hash(), output_index), tx_obj.tx_outs[output_index])

    @property
    def amount(self):
        return self.tx_out.amount

    @property
    def script_pubkey(self):
        return self.tx_out.script_pubkey


def as_redeem_script(redeem_script):
    """Coerces a Script or its raw serialization to a RedeemScript"""
    if isinstance(redeem_script, RedeemScript):
        return redeem_script
    if isinstance(redeem_script, Script):
        return RedeemScript(redeem_script.commands)
    if isinstance(redeem_script, bytes):
        return RedeemScript.convert(redeem_script)
    raise TypeError(f"redeem_script must be a Script or bytes: {redeem_script!r}")


class ScriptCoin(Coin):
    """A p2sh coin carrying the RedeemScript its ScriptPubKey commits to.

    The commitment is not checked here; a mismatched RedeemScript only fails
    once the spending input is verified."""

    def __init__(self, outpoint, tx_out, redeem_script):
        super().__init__(outpoint, tx_out)
        self.redeem_script = as_redeem_script(redeem_script)

    @classmethod
    def from_redeem_script(cls, outpoint, amount, redeem_script):
        """A ScriptCoin whose output pays to the p2sh of redeem_script"""
        redeem_script = as_redeem_script(redeem_script)
        return cls(outpoint, TxOut(amount, redeem_script.script_pubkey()), redeem_script)
