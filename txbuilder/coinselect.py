import logging

from random import Random


logger = logging.getLogger(__name__)

RANDOM_SEARCH_ROUNDS = 1000


class CoinSelector:
    """Chooses which coins fund a target amount.

    select returns a list of coins whose amounts cover target, or None when
    the coins cannot."""

    def select(self, coins, target):
        raise NotImplementedError


class DefaultCoinSelector(CoinSelector):
    """
    The change-minimizing heuristic of the reference bitcoin wallet:

    1. a coin matching the target exactly is used on its own
    2. if all coins smaller than the target add up to it, they are used
    3. if they don't surpass the target, the smallest coin above it is used
    4. otherwise rounds of random combinations look for an exact match,
       once for every coin at or above the target

    When no round is exact the smaller coins from step 2 are used.
    A seed makes the random rounds reproducible.
    """

    def __init__(self, seed=None, rng=None):
        if rng is None:
            rng = Random(seed)
        self.rng = rng

    def select(self, coins, target):
        coins = list(coins)
        for coin in coins:
            if coin.amount == target:
                logger.debug("exact match %r for target %d", coin, target)
                return [coin]

        ordered_coins = sorted(coins, key=lambda c: c.amount)
        result = []
        total = 0
        for coin in ordered_coins:
            if coin.amount < target:
                total += coin.amount
                result.append(coin)
                if total == target:
                    logger.debug("smaller coins sum to target %d", target)
                    return result
            elif total < target:
                logger.debug("smallest coin above target %d is %r", target, coin)
                return [coin]
            else:
                found = self.random_search(ordered_coins, target)
                if found is None:
                    return None
                if found:
                    return found
                # the best overshooting round is never used, the next coin
                # at or above the target searches again
        if total < target:
            logger.debug("coins total %d, short of target %d", total, target)
            return None
        return result

    def random_search(self, ordered_coins, target):
        """Shuffled rounds of accumulating coins until target is reached.

        Returns the coins of a round that hit target exactly, None when a
        round cannot reach target, or an empty list when no round was exact.
        """
        all_coins = ordered_coins[:]
        min_total = None
        min_selection = None
        for _ in range(RANDOM_SEARCH_ROUNDS):
            self.rng.shuffle(all_coins)
            selection = []
            total = 0
            for coin in all_coins:
                selection.append(coin)
                total += coin.amount
                if total == target:
                    logger.debug("random round hit target %d exactly", target)
                    return selection
                if total > target:
                    break
            if total < target:
                return None
            if min_total is None or total < min_total:
                min_total = total
                min_selection = selection
        logger.debug(
            "no exact random round, closest was %d over %d coins",
            min_total,
            len(min_selection),
        )
        return []
