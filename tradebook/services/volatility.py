"""
Static daily volatility table used when no price history is available.
Values are typical daily ranges as a fraction of price.
"""
import re
from typing import Dict, Optional

# Longest first so "-USDT" is stripped before "USDT" and "USD"
QUOTE_SUFFIXES = ("-PERP", "PERP", "-USDT", "/USDT", "USDT", "-USD", "/USD", "USD")

MAJOR_CRYPTO_VOLATILITY: Dict[str, float] = {
    "BTC": 0.02,
    "ETH": 0.025,
    "BNB": 0.025,
    "XRP": 0.03,
    "SOL": 0.03,
}

ALT_CRYPTO = {
    "ADA", "DOT", "LINK", "AVAX", "MATIC", "LTC", "BCH", "ATOM", "UNI", "XLM",
    "ALGO", "NEAR", "FIL", "AAVE", "ICP", "HBAR", "APT", "ARB", "OP", "SUI",
    "TRX", "ETC", "INJ", "FTM", "SAND", "MANA", "AXS",
}
ALT_CRYPTO_VOLATILITY = 0.04

MEME_CRYPTO = {"DOGE", "SHIB", "PEPE", "FLOKI", "BONK", "WIF", "MEME"}
MEME_CRYPTO_VOLATILITY = 0.05

ASSET_CLASS_VOLATILITY: Dict[str, float] = {
    "crypto": ALT_CRYPTO_VOLATILITY,
    "stock": 0.015,
    "stocks": 0.015,
    "forex": 0.008,
    "futures": 0.02,
}
DEFAULT_VOLATILITY = 0.03

_FOREX_PAIR = re.compile(r"^[A-Z]{6}$")
_PAIR_SEPARATORS = re.compile(r"[\s/\-_]")


def normalize_symbol(symbol: str) -> str:
    """Upper-case and strip quote/perpetual suffixes: BTCUSDT-PERP -> BTC."""
    normalized = symbol.upper().strip()
    stripped = True
    while stripped:
        stripped = False
        for suffix in QUOTE_SUFFIXES:
            if normalized.endswith(suffix) and len(normalized) > len(suffix):
                normalized = normalized[: -len(suffix)]
                stripped = True
                break
    return normalized


def symbol_volatility(symbol: str) -> Optional[float]:
    """Per-symbol figure for known crypto assets, None otherwise."""
    base = normalize_symbol(symbol)
    if base in MAJOR_CRYPTO_VOLATILITY:
        return MAJOR_CRYPTO_VOLATILITY[base]
    if base in MEME_CRYPTO:
        return MEME_CRYPTO_VOLATILITY
    if base in ALT_CRYPTO:
        return ALT_CRYPTO_VOLATILITY
    return None


def infer_asset_class(symbol: str) -> Optional[str]:
    if symbol_volatility(symbol) is not None:
        return "crypto"
    compact = _PAIR_SEPARATORS.sub("", symbol.upper())
    if _FOREX_PAIR.match(compact):
        return "forex"
    return None


def get_volatility(symbol: str, asset_class: Optional[str] = None) -> float:
    """
    Daily volatility for a symbol.
    Known symbol first, then the asset class default (inferred from the
    symbol shape when absent), then DEFAULT_VOLATILITY.
    """
    known = symbol_volatility(symbol)
    if known is not None:
        return known

    klass = (asset_class or "").lower().strip() or infer_asset_class(symbol)
    if klass in ASSET_CLASS_VOLATILITY:
        return ASSET_CLASS_VOLATILITY[klass]
    return DEFAULT_VOLATILITY
