from txbuilder.builder import (  # noqa: F401
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
from txbuilder.coin import Coin, ScriptCoin  # noqa: F401
from txbuilder.coinselect import CoinSelector, DefaultCoinSelector  # noqa: F401
from txbuilder.ecc import PrivateKey, S256Point, Signature  # noqa: F401
from txbuilder.script import (  # noqa: F401
    address_to_script_pubkey,
    MultiSigScriptPubKey,
    P2PKHScriptPubKey,
    P2PKScriptPubKey,
    P2SHScriptPubKey,
    RedeemScript,
    Script,
    verify_script,
)
from txbuilder.tx import OutPoint, Tx, TxIn, TxOut  # noqa: F401
