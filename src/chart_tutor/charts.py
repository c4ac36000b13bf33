"""Deterministic candle series for drill charts."""
import math

BASE_TIME = 1704067200  # 2024-01-01 00:00:00 UTC
DAY = 86400


def _lcg(seed: int):
    state = seed & 0xFFFFFFFF

    def rand() -> float:
        nonlocal state
        state = (1664525 * state + 1013904223) & 0xFFFFFFFF
        return state / 0xFFFFFFFF

    return rand


def generate_ohlc(
    seed: int,
    count: int,
    start: float = 100,
    drift: float = 0,
    vol: float = 1.5,
) -> list[dict]:
    """Generate an OHLC series; the same seed always yields the same candles.

    Args:
        seed: Any integer
        count: Number of candles
        start: Opening price of the first candle
        drift: Directional bias per candle, -1 to +1
        vol: Average body size in price units
    """
    rand = _lcg(seed)
    candles = []
    price = start
    for i in range(count):
        body = (rand() - 0.45 + drift * 0.12) * vol * 2
        open_ = max(0.01, price)
        close = max(0.01, open_ + body)
        upper_wick = rand() * vol * 0.7
        lower_wick = rand() * vol * 0.7
        candles.append({
            "time": BASE_TIME + i * DAY,
            "open": round(open_, 2),
            "high": round(max(open_, close) + upper_wick, 2),
            "low": round(min(open_, close) - lower_wick, 2),
            "close": round(close, 2),
        })
        price = close
    return candles


def price_range(candles: list[dict]) -> tuple[float, float] | None:
    """Lowest low and highest high of a series, or None when it is empty."""
    if not candles:
        return None
    return min(c["low"] for c in candles), max(c["high"] for c in candles)


def bottom_zone(candles: list[dict], pct: float = 0.25) -> tuple[float, float]:
    """Span of the lowest ``pct`` fraction of candle lows (support, liquidity)."""
    lows = sorted(c["low"] for c in candles)
    take = max(3, math.ceil(len(lows) * pct))
    return round(lows[0], 2), round(lows[take - 1], 2)


def top_zone(candles: list[dict], pct: float = 0.25) -> tuple[float, float]:
    """Span of the highest ``pct`` fraction of candle highs (resistance)."""
    highs = sorted((c["high"] for c in candles), reverse=True)
    take = max(3, math.ceil(len(highs) * pct))
    return round(highs[take - 1], 2), round(highs[0], 2)


def extremes(candles: list[dict]) -> dict:
    """Highest high and lowest low with their bar indices."""
    high_idx = max(range(len(candles)), key=lambda i: candles[i]["high"])
    low_idx = min(range(len(candles)), key=lambda i: candles[i]["low"])
    return {
        "max_high": round(candles[high_idx]["high"], 2),
        "max_high_idx": high_idx,
        "min_low": round(candles[low_idx]["low"], 2),
        "min_low_idx": low_idx,
    }
