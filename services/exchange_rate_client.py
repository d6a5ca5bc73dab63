# services/exchange_rate_client.py
from __future__ import annotations
import math
import time
from typing import Dict, Optional
import requests

from utils.logging import get_logger

log = get_logger("rates")

API_URL = "https://api.exchangerate-api.com/v4/latest/{base}"


def get_latest_rates(base: str = "USD",
                     session: Optional[requests.Session] = None,
                     timeout: tuple[float, float] = (3.0, 10.0)) -> Dict[str, float]:
    """
    Latest rates pivoted on `base`: {"EUR": 0.92, "GBP": 0.79, ...}
    meaning 1 unit of base == rate units of that currency.
    Raises requests exceptions on transport/HTTP errors, ValueError on a bad payload.
    """
    sess = session or requests.Session()
    t0 = time.perf_counter()
    r = sess.get(API_URL.format(base=base.upper()), timeout=timeout)
    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    r.raise_for_status()

    payload = r.json()
    rates = payload.get("rates") if isinstance(payload, dict) else None
    if not isinstance(rates, dict):
        raise ValueError("Exchange-rate response has no 'rates' object.")

    out: Dict[str, float] = {}
    for code, value in rates.items():
        try:
            rate = float(value)
        except (TypeError, ValueError):
            log.debug("Skipping non-numeric rate %s=%r", code, value)
            continue
        if math.isfinite(rate):
            out[str(code).upper()] = rate
    log.info("Fetched %d %s-based rates in %.1f ms.", len(out), base.upper(), elapsed_ms)
    return out
