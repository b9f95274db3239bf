"""Static alias tables for token denoms.

The same logical asset can be registered under several historical denoms
(one per bridge generation or per source chain). COMMON_ASSET_NAME folds
them to one canonical denom; every canonical denom maps to itself so that
resolution is idempotent.
"""

COMMON_ASSET_NAME: dict[str, str] = {
    # SWTH (native, NEO-, BSC- and ETH-bridged)
    "swth": "swth",
    "swth-n": "swth",
    "swth-b": "swth",
    "swth-e": "swth",
    # Ethereum
    "eth": "eth",
    "eth1": "eth",
    # Bitcoin
    "btc": "btc",
    "wbtc": "btc",
    "wbtc1": "btc",
    "btcb": "btc",
    "btcb1": "btc",
    # Stablecoins
    "usdc": "usdc",
    "usdc1": "usdc",
    "busd": "busd",
    "busd1": "busd",
    "dai": "dai",
    "dai1": "dai",
    "usdt": "usdt",
    "usdt1": "usdt",
    "zusdt": "usdt",
    # BNB
    "bnb": "bnb",
    "bnb1": "bnb",
    # NEO
    "nneo": "nneo",
    "nneo1": "nneo",
    "nneo2": "nneo",
    # Zilliqa
    "zil": "zil",
    "zil1": "zil",
    "zwap": "zwap",
    "zwap1": "zwap",
    # Misc
    "cel": "cel",
    "cel1": "cel",
    "nex": "nex",
    "nex1": "nex",
    "flm": "flm",
    "flm1": "flm",
    "cgas": "cgas",
    "cgas1": "cgas",
}

# canonical denom -> CoinGecko coin id
COINGECKO_IDS: dict[str, str] = {
    "swth": "switcheo",
    "eth": "ethereum",
    "btc": "bitcoin",
    "usdc": "usd-coin",
    "busd": "binance-usd",
    "dai": "dai",
    "usdt": "tether",
    "bnb": "binancecoin",
    "nneo": "neo",
    "zil": "zilliqa",
    "zwap": "zilswap",
    "cel": "celsius-degree-token",
    "nex": "neon-exchange",
    "flm": "flamingo-finance",
    "cgas": "gas",
}

# display symbol -> symbol shown for token names
SYMBOL_OVERRIDE: dict[str, str] = {
    "SWTHB": "SWTH",
    "NNEO": "nNEO",
}
