"""Scan universe: static ticker lists grouped by sector."""

from typing import Dict, Iterable, List, Mapping, Optional

SECTOR_TICKERS: Dict[str, List[str]] = {
    'Tech': ['AAPL', 'MSFT', 'NVDA', 'AMZN', 'META', 'GOOGL', 'ADBE', 'CRM', 'NOW', 'ORCL', 'INTU', 'SHOP', 'PANW', 'UBER'],
    'Semis': ['AMD', 'AVGO', 'QCOM', 'MU', 'INTC', 'ASML', 'TSM', 'SMH'],
    'Finance': ['JPM', 'BAC', 'MS', 'GS', 'SCHW', 'V', 'MA', 'AXP'],
    'Consumer': ['COST', 'WMT', 'HD', 'LOW', 'NKE', 'SBUX', 'MCD', 'PG', 'KO', 'PEP'],
    'Healthcare': ['LLY', 'UNH', 'JNJ', 'PFE', 'MRK', 'ABT', 'TMO'],
    'Energy': ['XOM', 'CVX', 'COP', 'SLB', 'EOG'],
    'Industrials': ['CAT', 'DE', 'HON', 'GE', 'BA', 'UPS'],
    'Materials': ['LIN', 'SHW', 'FCX', 'NEM'],
    'Crypto': ['BTCUSD', 'ETHUSD', 'SOLUSD', 'ADAUSD', 'XRPUSD'],
}

CRYPTO_BASES = ('BTC', 'ETH', 'SOL', 'ADA', 'XRP', 'DOGE', 'BNB', 'LTC', 'DOT', 'AVAX', 'LINK')


def get_universe(
    sectors: Optional[Iterable[str]] = None,
    table: Optional[Mapping[str, List[str]]] = None
) -> List[str]:
    """Tickers for the selected sectors, de-duplicated in first-seen order.

    Args:
        sectors: Sector names to include. None or empty selects every sector.
            Names missing from the table are ignored.
        table: Sector lookup table (defaults to SECTOR_TICKERS).

    Returns:
        List of ticker symbols.
    """
    table = SECTOR_TICKERS if table is None else table
    selected = list(sectors or []) or list(table.keys())

    tickers: List[str] = []
    seen = set()
    for sector in selected:
        for ticker in table.get(sector, []):
            if ticker not in seen:
                seen.add(ticker)
                tickers.append(ticker)
    return tickers


def detect_kind(symbol: str) -> str:
    """Classify a symbol as 'crypto' (USD/USDT pairs, bare coin names) or 'stock'."""
    s = (symbol or '').upper().strip()
    if 'USD' in s:
        return 'crypto'
    if s in CRYPTO_BASES:
        return 'crypto'
    return 'stock'
