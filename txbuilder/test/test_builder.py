from unittest import TestCase

from txbuilder.builder import (
    InsufficientFunds,
    InsufficientKeys,
    KeyNotFound,
    MissingChangeDestination,
    NotAScriptHashCoin,
    Payment,
    TransactionBuilder,
    TransactionBuilderError,
    UnknownCoin,
    UnsupportedScript,
)
from txbuilder.coin import Coin, ScriptCoin
from txbuilder.coinselect import CoinSelector, DefaultCoinSelector
from txbuilder.ecc import PrivateKey
from txbuilder.op import OP_0, OP_1
from txbuilder.script import (
    MultiSigScriptPubKey,
    RedeemScript,
    ScriptPubKey,
    verify_script,
)
from txbuilder.tx import OutPoint, TxOut


def outpoint(n, index=0):
    return OutPoint(bytes([n]) * 32, index)


class TakeFirstSelector(CoinSelector):
    def select(self, coins, target):
        return coins[:1]


class TakeNoneSelector(CoinSelector):
    def select(self, coins, target):
        return None


class TakeAllSelector(CoinSelector):
    def select(self, coins, target):
        return list(coins)


class BuilderTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.key1 = PrivateKey(8675309)
        cls.key2 = PrivateKey(8675310)
        cls.key3 = PrivateKey(8675311)
        cls.keys = [cls.key1, cls.key2, cls.key3]

    def p2pkh_coin(self, n, amount, key=None):
        key = key or self.key1
        return Coin(outpoint(n), TxOut(amount, key.point.p2pkh_script()))

    def p2sh_multisig_coin(self, n, amount, quorum_m=2):
        redeem_script = RedeemScript.create_p2sh_multisig(
            quorum_m, [key.sec().hex() for key in self.keys]
        )
        return ScriptCoin.from_redeem_script(outpoint(n), amount, redeem_script)

    def payment_builder(self, *coins, seed=1):
        return (
            TransactionBuilder(seed=seed)
            .add_coins(*coins)
            .send_to(self.key2.address(), 60000)
            .set_fee(1000)
            .set_change(self.key1.address())
        )

    def test_p2pkh(self):
        builder = self.payment_builder(self.p2pkh_coin(1, 100000)).add_keys(self.key1)
        tx_obj = builder.build()
        self.assertEqual(len(tx_obj.tx_ins), 1)
        self.assertEqual(tx_obj.tx_ins[0].outpoint, outpoint(1))
        self.assertEqual(sorted(o.amount for o in tx_obj.tx_outs), [39000, 60000])
        payment = [o for o in tx_obj.tx_outs if o.amount == 60000][0]
        self.assertEqual(payment.script_pubkey, self.key2.point.p2pkh_script())
        change = [o for o in tx_obj.tx_outs if o.amount == 39000][0]
        self.assertEqual(change.script_pubkey, self.key1.point.p2pkh_script())
        script_sig = tx_obj.tx_ins[0].script_sig
        self.assertEqual(script_sig.commands[1], self.key1.sec())
        self.assertTrue(builder.verify(tx_obj))
        self.assertEqual(builder.fee_of(tx_obj), 1000)

    def test_no_change_needed(self):
        builder = TransactionBuilder(seed=1)
        builder.add_coins(self.p2pkh_coin(1, 61000), self.p2pkh_coin(2, 5000))
        builder.add_keys(self.key1)
        builder.send_to(self.key2.address(), 60000).set_fee(1000)
        tx_obj = builder.build()
        self.assertEqual(len(tx_obj.tx_ins), 1)
        self.assertEqual(len(tx_obj.tx_outs), 1)
        self.assertTrue(builder.verify(tx_obj))

    def test_funding_invariant(self):
        coins = [
            self.p2pkh_coin(n, amount)
            for n, amount in enumerate((1200, 50000, 3000, 80000, 700), start=1)
        ]
        builder = TransactionBuilder(seed=5).add_coins(*coins).add_keys(self.key1)
        builder.send_to(self.key2.address(), 52000)
        builder.send_to(self.key3.address(), 3100)
        builder.set_fee(900).set_change(self.key1.address())
        tx_obj = builder.build()
        input_sum = sum(builder.find_coin(i.outpoint).amount for i in tx_obj.tx_ins)
        output_sum = tx_obj.total_out()
        self.assertEqual(input_sum - output_sum, 900)
        change = input_sum - 52000 - 3100 - 900
        amounts = sorted(o.amount for o in tx_obj.tx_outs)
        if change:
            self.assertEqual(amounts, sorted([52000, 3100, change]))
        else:
            self.assertEqual(amounts, [3100, 52000])
        self.assertTrue(builder.verify(tx_obj))

    def test_deterministic(self):
        def build():
            coins = [
                self.p2pkh_coin(n, amount)
                for n, amount in enumerate((1, 2, 3, 4, 5, 6, 7, 8, 9, 100000), start=1)
            ]
            builder = TransactionBuilder(seed=42).add_coins(*coins)
            builder.add_keys(self.key1)
            builder.send_to(self.key2.address(), 10).send_to(self.key3.address(), 2)
            builder.set_fee(1).set_change(self.key1.address())
            return builder.build()

        self.assertEqual(build().serialize(), build().serialize())

    def test_change_position(self):
        positions = set()
        for seed in range(16):
            builder = self.payment_builder(self.p2pkh_coin(1, 100000), seed=seed)
            tx_obj = builder.add_keys(self.key1).build()
            for i, tx_out in enumerate(tx_obj.tx_outs):
                if tx_out.amount == 39000:
                    positions.add(i)
        self.assertEqual(positions, {0, 1})

    def test_version_locktime(self):
        builder = TransactionBuilder(seed=1, version=2, locktime=650000)
        builder.add_coins(self.p2pkh_coin(1, 61000)).add_keys(self.key1)
        builder.send_to(self.key2.address(), 60000).set_fee(1000)
        tx_obj = builder.build()
        self.assertEqual(tx_obj.version, 2)
        self.assertEqual(tx_obj.locktime, 650000)
        self.assertTrue(builder.verify(tx_obj))

    def test_testnet(self):
        key = PrivateKey(8675309, network="testnet")
        builder = TransactionBuilder(seed=1, network="testnet")
        builder.add_coins(self.p2pkh_coin(1, 61000)).add_keys(key.wif())
        builder.send_to(key.address(), 60000).set_fee(1000)
        self.assertTrue(builder.verify(builder.build()))
        with self.assertRaises(ValueError):
            builder.send_to(self.key2.address(), 1000)

    def test_logs_selection(self):
        builder = self.payment_builder(self.p2pkh_coin(1, 100000)).add_keys(self.key1)
        with self.assertLogs("txbuilder.builder", level="DEBUG") as cm:
            builder.build()
        self.assertIn("target 61000", cm.output[0])

    def test_wif_keys(self):
        builder = self.payment_builder(self.p2pkh_coin(1, 100000))
        builder.add_keys(self.key1.wif())
        self.assertTrue(builder.verify(builder.build()))

    def test_p2pk(self):
        coin = Coin(outpoint(1), TxOut(100000, self.key1.point.p2pk_script()))
        builder = self.payment_builder(coin).add_keys(self.key1)
        tx_obj = builder.build()
        self.assertEqual(len(tx_obj.tx_ins[0].script_sig.commands), 1)
        self.assertTrue(builder.verify(tx_obj))

    def test_multisig(self):
        script_pubkey = MultiSigScriptPubKey(2, [key.sec() for key in self.keys])
        coin = Coin(outpoint(1), TxOut(100000, script_pubkey))
        builder = self.payment_builder(coin).add_keys(self.key3, self.key1)
        tx_obj = builder.build()
        script_sig = tx_obj.tx_ins[0].script_sig
        self.assertEqual(script_sig.commands[0], OP_0)
        self.assertEqual(len(script_sig.commands), 3)
        self.assertTrue(builder.verify(tx_obj))

    def test_p2sh_multisig(self):
        coin = self.p2sh_multisig_coin(1, 100000)
        builder = self.payment_builder(coin).add_keys(*self.keys)
        tx_obj = builder.build()
        script_sig = tx_obj.tx_ins[0].script_sig
        self.assertEqual(script_sig.commands[0], OP_0)
        self.assertEqual(script_sig.commands[-1], coin.redeem_script.raw_serialize())
        # two signatures, the dummy and the RedeemScript
        self.assertEqual(len(script_sig.commands), 4)
        self.assertTrue(builder.verify(tx_obj))

    def test_p2sh_p2pkh(self):
        redeem_script = RedeemScript(self.key1.point.p2pkh_script().commands)
        coin = ScriptCoin.from_redeem_script(outpoint(1), 100000, redeem_script)
        builder = self.payment_builder(coin).add_keys(self.key1)
        self.assertTrue(builder.verify(builder.build()))

    def test_mixed_inputs(self):
        coins = [self.p2pkh_coin(1, 30000), self.p2sh_multisig_coin(2, 50000)]
        builder = TransactionBuilder(seed=3).add_coins(*coins).add_keys(*self.keys)
        builder.send_to(self.key3.point, 70000).set_fee(1000)
        builder.set_change(coins[1].redeem_script)
        tx_obj = builder.build()
        self.assertEqual(len(tx_obj.tx_ins), 2)
        self.assertEqual(sorted(o.amount for o in tx_obj.tx_outs), [9000, 70000])
        self.assertEqual(builder.fee_of(tx_obj), 1000)
        self.assertTrue(builder.verify(tx_obj))
        for i, tx_in in enumerate(tx_obj.tx_ins):
            coin = builder.find_coin(tx_in.outpoint)
            self.assertTrue(
                verify_script(tx_in.script_sig, coin.script_pubkey, tx_obj, i)
            )

    def test_tampered(self):
        builder = self.payment_builder(self.p2pkh_coin(1, 100000)).add_keys(self.key1)
        tx_obj = builder.build()
        tx_obj.tx_outs[0].amount -= 1
        self.assertFalse(builder.verify(tx_obj))

    def test_custom_selector(self):
        coins = [self.p2pkh_coin(1, 70000), self.p2pkh_coin(2, 30000)]
        builder = self.payment_builder(*coins).add_keys(self.key1)
        builder.set_coin_selector(TakeAllSelector())
        tx_obj = builder.build()
        self.assertEqual(len(tx_obj.tx_ins), 2)
        self.assertEqual(tx_obj.tx_ins[0].outpoint, outpoint(1))
        self.assertTrue(builder.verify(tx_obj))

    def test_default_selector(self):
        builder = TransactionBuilder(seed=9)
        self.assertIsInstance(builder.coin_selector, DefaultCoinSelector)
        self.assertEqual(builder.fee, 0)
        self.assertIsNone(builder.change_script)


class BuilderErrorTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.key1 = PrivateKey(8675309)
        cls.key2 = PrivateKey(8675310)
        cls.key3 = PrivateKey(8675311)

    def coin(self, n, amount, script_pubkey=None):
        if script_pubkey is None:
            script_pubkey = self.key1.point.p2pkh_script()
        return Coin(outpoint(n), TxOut(amount, script_pubkey))

    def builder(self, *coins):
        return (
            TransactionBuilder(seed=1)
            .add_coins(*coins)
            .send_to(self.key2.address(), 60000)
            .set_fee(1000)
            .set_change(self.key1.address())
        )

    def test_hierarchy(self):
        for error in (
            InsufficientFunds,
            MissingChangeDestination,
            NotAScriptHashCoin,
            KeyNotFound,
            InsufficientKeys,
            UnsupportedScript,
            UnknownCoin,
        ):
            self.assertTrue(issubclass(error, TransactionBuilderError))
        self.assertTrue(issubclass(InsufficientKeys, KeyNotFound))
        self.assertTrue(issubclass(KeyNotFound, KeyError))
        self.assertTrue(issubclass(UnknownCoin, KeyError))

    def test_insufficient_funds(self):
        builder = self.builder(self.coin(1, 30000), self.coin(2, 30000))
        builder.add_keys(self.key1)
        with self.assertRaises(InsufficientFunds):
            builder.build()

    def test_selector_underfunds(self):
        builder = self.builder(self.coin(1, 30000), self.coin(2, 50000))
        builder.add_keys(self.key1)
        builder.set_coin_selector(TakeFirstSelector())
        with self.assertRaises(InsufficientFunds):
            builder.build()
        builder.set_coin_selector(TakeNoneSelector())
        with self.assertRaises(InsufficientFunds):
            builder.build()

    def test_missing_change(self):
        builder = TransactionBuilder(seed=1).add_coins(self.coin(1, 100000))
        builder.add_keys(self.key1).send_to(self.key2.address(), 60000)
        with self.assertRaises(MissingChangeDestination):
            builder.build()

    def test_nothing_to_fund(self):
        with self.assertRaises(ValueError):
            TransactionBuilder().add_coins(self.coin(1, 1000)).build()

    def test_key_not_found(self):
        builder = self.builder(self.coin(1, 100000)).add_keys(self.key2)
        with self.assertRaises(KeyNotFound):
            builder.build()
        coin = self.coin(2, 100000, self.key1.point.p2pk_script())
        builder = self.builder(coin).add_keys(self.key2)
        with self.assertRaises(KeyError):
            builder.build()

    def test_insufficient_keys(self):
        script_pubkey = MultiSigScriptPubKey(
            2, [key.sec() for key in (self.key1, self.key2, self.key3)]
        )
        builder = self.builder(self.coin(1, 100000, script_pubkey)).add_keys(self.key2)
        with self.assertRaises(InsufficientKeys):
            builder.build()

    def test_not_a_script_hash_coin(self):
        redeem_script = RedeemScript.create_p2sh_multisig(1, [self.key1.sec().hex()])
        coin = self.coin(1, 100000, redeem_script.script_pubkey())
        builder = self.builder(coin).add_keys(self.key1)
        with self.assertRaises(NotAScriptHashCoin):
            builder.build()

    def test_unsupported_script(self):
        coin = self.coin(1, 100000, ScriptPubKey([OP_1]))
        builder = self.builder(coin).add_keys(self.key1)
        with self.assertRaises(UnsupportedScript):
            builder.build()

    def test_nested_p2sh(self):
        inner = RedeemScript.create_p2sh_multisig(1, [self.key1.sec().hex()])
        redeem_script = RedeemScript(inner.script_pubkey().commands)
        coin = ScriptCoin.from_redeem_script(outpoint(1), 100000, redeem_script)
        builder = self.builder(coin).add_keys(self.key1)
        with self.assertRaises(UnsupportedScript):
            builder.build()

    def test_unknown_coin(self):
        tx_obj = self.builder(self.coin(1, 100000)).add_keys(self.key1).build()
        other = self.builder(self.coin(2, 100000))
        with self.assertRaises(UnknownCoin):
            other.verify(tx_obj)
        with self.assertRaises(KeyError):
            other.find_coin(outpoint(1))

    def test_send_to(self):
        builder = TransactionBuilder()
        builder.send_to(self.key2.point, 5000)
        self.assertEqual(
            builder.payments, [Payment(self.key2.point.p2pkh_script(), 5000)]
        )
        with self.assertRaises(ValueError):
            builder.send_to(None, 5000)
        with self.assertRaises(ValueError):
            builder.send_to(self.key2.address(), 0)
        with self.assertRaises(ValueError):
            builder.send_to(self.key2.address(), -5)
        with self.assertRaises(TypeError):
            builder.send_to(self.key2.address(), 1.5)
        with self.assertRaises(TypeError):
            builder.send_to(42, 5000)

    def test_setters(self):
        builder = TransactionBuilder()
        with self.assertRaises(ValueError):
            builder.set_fee(None)
        with self.assertRaises(ValueError):
            builder.set_fee(-1)
        with self.assertRaises(ValueError):
            builder.set_change(None)
        with self.assertRaises(ValueError):
            builder.set_coin_selector(None)
        with self.assertRaises(TypeError):
            builder.set_coin_selector(object())
        with self.assertRaises(TypeError):
            builder.add_coins(None)
        with self.assertRaises(TypeError):
            builder.add_keys(12345)
        self.assertIs(builder.set_fee(0), builder)
