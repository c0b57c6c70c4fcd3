import logging

from collections import namedtuple
from random import Random

from txbuilder.coin import Coin, ScriptCoin
from txbuilder.coinselect import CoinSelector, DefaultCoinSelector
from txbuilder.ecc import PrivateKey
from txbuilder.helper import check_amount, SIGHASH_ALL
from txbuilder.script import destination_to_script_pubkey, verify_script
from txbuilder.template import (
    find_template,
    PAY_TO_MULTISIG,
    PAY_TO_PUBKEY,
    PAY_TO_PUBKEY_HASH,
    PAY_TO_SCRIPT_HASH,
    TransactionSignature,
)
from txbuilder.tx import Tx, TxIn, TxOut


logger = logging.getLogger(__name__)


class TransactionBuilderError(Exception):
    pass


class InsufficientFunds(TransactionBuilderError):
    pass


class MissingChangeDestination(TransactionBuilderError):
    pass


class NotAScriptHashCoin(TransactionBuilderError):
    pass


class KeyNotFound(TransactionBuilderError, KeyError):
    pass


class InsufficientKeys(KeyNotFound):
    pass


class UnsupportedScript(TransactionBuilderError):
    pass


class UnknownCoin(TransactionBuilderError, KeyError):
    pass


Payment = namedtuple("Payment", ["script_pubkey", "amount"])


class TransactionBuilder:
    """
    Funds and signs a legacy transaction out of a pool of coins and keys.

    Queue payments with send_to, supply coins and keys, then call build:

        tx_obj = (
            TransactionBuilder()
            .add_coins(coin)
            .add_keys(private_key)
            .send_to(address, 50000)
            .set_fee(1000)
            .set_change(change_address)
            .build()
        )

    A seed makes coin selection and output order (and so the whole
    transaction) reproducible.
    """

    def __init__(self, seed=None, network="mainnet", version=1, locktime=0):
        self.rng = Random(seed)
        self.network = network
        self.version = version
        self.locktime = locktime
        self.fee = 0
        self.change_script = None
        self.coin_selector = DefaultCoinSelector(seed)
        self.coins = []
        self.keys = []
        self.payments = []

    def add_coins(self, *coins):
        for coin in coins:
            if not isinstance(coin, Coin):
                raise TypeError(f"not a Coin: {coin!r}")
        self.coins.extend(coins)
        return self

    def add_keys(self, *keys):
        """Adds PrivateKey objects or WIF strings"""
        for key in keys:
            if isinstance(key, str):
                key = PrivateKey.parse(key)
            if not isinstance(key, PrivateKey):
                raise TypeError(f"not a PrivateKey: {key!r}")
            self.keys.append(key)
        return self

    def send_to(self, destination, amount):
        """Queues an output paying amount satoshis to destination"""
        if destination is None:
            raise ValueError("destination is required")
        if check_amount(amount) == 0:
            raise ValueError("cannot send zero satoshis")
        script_pubkey = destination_to_script_pubkey(destination, self.network)
        self.payments.append(Payment(script_pubkey, amount))
        return self

    def set_fee(self, fee):
        if fee is None:
            raise ValueError("fee is required")
        self.fee = check_amount(fee)
        return self

    def set_change(self, destination):
        if destination is None:
            raise ValueError("destination is required")
        self.change_script = destination_to_script_pubkey(destination, self.network)
        return self

    def set_coin_selector(self, selector):
        if selector is None:
            raise ValueError("selector is required")
        if not isinstance(selector, CoinSelector):
            raise TypeError(f"not a CoinSelector: {selector!r}")
        self.coin_selector = selector
        return self

    def build(self):
        """Returns a fully signed Tx or raises"""
        tx_obj = Tx(version=self.version, locktime=self.locktime)
        for payment in self.payments:
            tx_obj.tx_outs.append(TxOut(payment.amount, payment.script_pubkey))
        target = tx_obj.total_out() + self.fee
        if target == 0:
            raise ValueError("nothing to fund, queue a payment or set a fee")

        selection = self.coin_selector.select(self.coins, target)
        if selection is None:
            raise InsufficientFunds(
                f"not enough funds in {len(self.coins)} coins to cover {target}"
            )
        total = sum(coin.amount for coin in selection)
        if total < target:
            raise InsufficientFunds(f"selected {total} does not cover {target}")
        logger.debug(
            "selected %d coins totalling %d for target %d",
            len(selection),
            total,
            target,
        )

        if total != target:
            if self.change_script is None:
                raise MissingChangeDestination(
                    f"{total - target} of change needs a change destination"
                )
            tx_obj.tx_outs.append(TxOut(total - target, self.change_script))
        # change must not be recognizable by its position
        self.rng.shuffle(tx_obj.tx_outs)

        for coin in selection:
            tx_obj.tx_ins.append(TxIn(coin.outpoint))
        for input_index, coin in enumerate(selection):
            self.sign_input(tx_obj, input_index, coin)
        return tx_obj

    def verify(self, tx_obj):
        """Returns whether every input of tx_obj satisfies the coin it spends"""
        for input_index, tx_in in enumerate(tx_obj.tx_ins):
            coin = self.find_coin(tx_in.outpoint)
            if not verify_script(
                tx_in.script_sig, coin.script_pubkey, tx_obj, input_index
            ):
                logger.debug("input %d of %s does not verify", input_index, tx_obj.id())
                return False
        return True

    def fee_of(self, tx_obj):
        """Returns the satoshis tx_obj leaves to miners, looking inputs up in the pool"""
        input_sum = sum(self.find_coin(tx_in.outpoint).amount for tx_in in tx_obj.tx_ins)
        return input_sum - tx_obj.total_out()

    def find_coin(self, outpoint):
        for coin in self.coins:
            if coin.outpoint == outpoint:
                return coin
        raise UnknownCoin(f"no coin for outpoint {outpoint!r}")

    def find_key_by_hash160(self, h160):
        for key in self.keys:
            if key.hash160() == h160:
                return key
        return None

    def find_key_by_point(self, point):
        for key in self.keys:
            if key.point == point:
                return key
        return None

    def sign_input(self, tx_obj, input_index, coin):
        """Fills in the ScriptSig of the input at input_index, which spends coin"""
        tx_in = tx_obj.tx_ins[input_index]
        if find_template(coin.script_pubkey) is PAY_TO_SCRIPT_HASH:
            if not isinstance(coin, ScriptCoin):
                raise NotAScriptHashCoin(
                    f"coin {coin.outpoint!r} is p2sh but carries no RedeemScript"
                )
            script_sig = self.create_script_sig(
                tx_obj, input_index, coin, coin.redeem_script
            )
            tx_in.script_sig = PAY_TO_SCRIPT_HASH.generate_script_sig(
                script_sig, coin.redeem_script
            )
        else:
            tx_in.script_sig = self.create_script_sig(
                tx_obj, input_index, coin, coin.script_pubkey
            )

    def create_script_sig(self, tx_obj, input_index, coin, script_code):
        """Returns the ScriptSig satisfying script_code for the input at input_index"""

        def sign(key):
            z = tx_obj.sig_hash(input_index, script_code, SIGHASH_ALL)
            return TransactionSignature(key.sign(z), SIGHASH_ALL)

        template = find_template(script_code)
        if template is PAY_TO_PUBKEY_HASH:
            key = self.find_key_by_hash160(template.extract(script_code))
            if key is None:
                raise KeyNotFound(f"no key for coin {coin.outpoint!r}")
            return template.generate_script_sig(sign(key), key.sec())

        if template is PAY_TO_MULTISIG:
            multisig = template.extract(script_code)
            keys = []
            for point in multisig.points:
                key = self.find_key_by_point(point)
                if key is not None:
                    keys.append(key)
                if len(keys) == multisig.signature_count:
                    break
            else:
                raise InsufficientKeys(
                    f"{len(keys)} of {multisig.signature_count} keys "
                    f"for multisig coin {coin.outpoint!r}"
                )
            return template.generate_script_sig([sign(key) for key in keys])

        if template is PAY_TO_PUBKEY:
            key = self.find_key_by_point(template.extract(script_code))
            if key is None:
                raise KeyNotFound(f"no key for coin {coin.outpoint!r}")
            return template.generate_script_sig(sign(key))

        # no template, or p2sh nested inside a RedeemScript
        raise UnsupportedScript(f"cannot sign {script_code!r}")
