"""Market data gateway: cryptocurrency quotes from CoinGecko with CryptoCompare fallback."""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

import httpx

from app.core import redis_client
from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MarketQuote:
    """Current market data for one symbol."""

    symbol: str
    price: Decimal
    market_cap: Decimal = Decimal("0")
    volume_24h: Decimal = Decimal("0")
    change_percent_24h: Decimal = Decimal("0")
    source: str = "coingecko"

    def to_cache(self) -> dict:
        return {k: str(v) for k, v in asdict(self).items()}

    @classmethod
    def from_cache(cls, data: dict) -> "MarketQuote":
        return cls(
            symbol=data["symbol"],
            price=Decimal(data["price"]),
            market_cap=Decimal(data.get("market_cap", "0")),
            volume_24h=Decimal(data.get("volume_24h", "0")),
            change_percent_24h=Decimal(data.get("change_percent_24h", "0")),
            source="cache",
        )


def _dec(value) -> Decimal:
    """Lenient Decimal conversion for upstream numbers (None/garbage -> 0)."""
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


class PriceService:
    """Service for fetching and caching cryptocurrency quotes."""

    COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
    CRYPTOCOMPARE_BASE_URL = "https://min-api.cryptocompare.com/data"

    # Unified symbol map for CoinGecko IDs
    SYMBOL_MAP = {
        "BTC": "bitcoin",
        "ETH": "ethereum",
        "BNB": "binancecoin",
        "SOL": "solana",
        "XRP": "ripple",
        "ADA": "cardano",
        "DOGE": "dogecoin",
        "AVAX": "avalanche-2",
        "SHIB": "shiba-inu",
        "DOT": "polkadot",
        "LINK": "chainlink",
        "LTC": "litecoin",
        "UNI": "uniswap",
        "MATIC": "matic-network",
        "ATOM": "cosmos",
        "TRX": "tron",
        "ETC": "ethereum-classic",
        "XLM": "stellar",
        "NEAR": "near",
        "ALGO": "algorand",
        "FIL": "filecoin",
        "APT": "aptos",
        "ARB": "arbitrum",
        "OP": "optimism",
        "SUI": "sui",
        "AAVE": "aave",
        "PEPE": "pepe",
        "USDT": "tether",
        "USDC": "usd-coin",
        "DAI": "dai",
    }

    # USD-pegged stablecoins: priced at 1 when every source fails
    STABLECOINS = {"USDT", "USDC", "DAI", "BUSD", "TUSD", "USDP", "FDUSD", "PYUSD"}

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        currency: Optional[str] = None,
        use_cache: bool = True,
    ):
        self.currency = (currency or settings.QUOTE_CURRENCY).lower()
        self.use_cache = use_cache

        if http_client is None:
            headers = {"Accept": "application/json"}
            # CoinGecko API key (optional, for higher rate limits)
            if settings.COINGECKO_API_KEY:
                headers["x-cg-demo-api-key"] = settings.COINGECKO_API_KEY
            http_client = httpx.AsyncClient(
                timeout=settings.MARKET_DATA_TIMEOUT_SECONDS,
                headers=headers,
            )
        self.http_client = http_client

        # Dynamic symbol cache (discovered from API)
        self._dynamic_symbol_cache: Dict[str, str] = {}

    async def close(self):
        """Close HTTP client."""
        await self.http_client.aclose()

    async def _search_coingecko_id(self, symbol: str) -> Optional[str]:
        """Search CoinGecko for the correct coin ID by symbol."""
        symbol_upper = symbol.upper()

        if symbol_upper in self.SYMBOL_MAP:
            return self.SYMBOL_MAP[symbol_upper]

        if symbol_upper in self._dynamic_symbol_cache:
            return self._dynamic_symbol_cache[symbol_upper]

        if self.use_cache:
            cached_id = await redis_client.get_cached_coin_id(symbol_upper)
            if cached_id:
                self._dynamic_symbol_cache[symbol_upper] = cached_id
                return cached_id

        try:
            response = await self.http_client.get(
                f"{self.COINGECKO_BASE_URL}/search",
                params={"query": symbol_upper},
            )
            response.raise_for_status()
            coins = response.json().get("coins", [])

            # Exact symbol match (case insensitive); results are ranked by market cap
            for coin in coins:
                if coin.get("symbol", "").upper() == symbol_upper and coin.get("id"):
                    coin_id = coin["id"]
                    self._dynamic_symbol_cache[symbol_upper] = coin_id
                    if self.use_cache:
                        await redis_client.cache_coin_id(symbol_upper, coin_id)
                    logger.info(f"Discovered CoinGecko ID for {symbol_upper}: {coin_id}")
                    return coin_id

            logger.info(f"No exact match found on CoinGecko for symbol: {symbol_upper}")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Error searching CoinGecko for {symbol_upper}: {e}")

        return None

    async def _fetch_from_coingecko(self, symbols: List[str]) -> Dict[str, MarketQuote]:
        """Primary source: CoinGecko simple/price, one request for the batch."""
        symbol_to_id: Dict[str, str] = {}
        for symbol in symbols:
            coin_id = await self._search_coingecko_id(symbol)
            symbol_to_id[symbol] = coin_id or symbol.lower()

        id_to_symbol = {v: k for k, v in symbol_to_id.items()}
        currency = self.currency

        response = await self.http_client.get(
            f"{self.COINGECKO_BASE_URL}/simple/price",
            params={
                "ids": ",".join(symbol_to_id.values()),
                "vs_currencies": currency,
                "include_24hr_change": "true",
                "include_24hr_vol": "true",
                "include_market_cap": "true",
            },
        )
        response.raise_for_status()
        data = response.json()

        results: Dict[str, MarketQuote] = {}
        for coin_id, coin_data in data.items():
            symbol = id_to_symbol.get(coin_id)
            if symbol is None:
                continue
            price = _dec(coin_data.get(currency))
            # Only use if price is valid (> 0)
            if price <= 0:
                continue
            results[symbol] = MarketQuote(
                symbol=symbol,
                price=price,
                market_cap=_dec(coin_data.get(f"{currency}_market_cap")),
                volume_24h=_dec(coin_data.get(f"{currency}_24h_vol")),
                change_percent_24h=_dec(coin_data.get(f"{currency}_24h_change")),
                source="coingecko",
            )
        return results

    async def _fetch_from_cryptocompare(self, symbols: List[str]) -> Dict[str, MarketQuote]:
        """Fallback: CryptoCompare pricemultifull, keyed by ticker."""
        currency = self.currency.upper()
        response = await self.http_client.get(
            f"{self.CRYPTOCOMPARE_BASE_URL}/pricemultifull",
            params={"fsyms": ",".join(symbols), "tsyms": currency},
        )
        response.raise_for_status()
        raw_data = response.json().get("RAW", {})

        results: Dict[str, MarketQuote] = {}
        for symbol, currency_data in raw_data.items():
            coin_data = currency_data.get(currency, {})
            price = _dec(coin_data.get("PRICE"))
            if price <= 0:
                continue
            results[symbol.upper()] = MarketQuote(
                symbol=symbol.upper(),
                price=price,
                market_cap=_dec(coin_data.get("MKTCAP")),
                volume_24h=_dec(coin_data.get("VOLUME24HOURTO")),
                change_percent_24h=_dec(coin_data.get("CHANGEPCT24HOUR")),
                source="cryptocompare",
            )
        return results

    async def get_quotes(self, symbols: List[str], fresh: bool = False) -> Dict[str, MarketQuote]:
        """Fetch quotes for many symbols. Symbols no source could price are absent.

        ``fresh`` skips cached quotes; what is fetched is still written to the cache.
        """
        wanted = list(dict.fromkeys(s.upper() for s in symbols if s))
        results: Dict[str, MarketQuote] = {}
        if not wanted:
            return results

        uncached = []
        for symbol in wanted:
            cached = await redis_client.get_cached_quote(symbol) if self.use_cache and not fresh else None
            if cached:
                results[symbol] = MarketQuote.from_cache(cached)
            else:
                uncached.append(symbol)

        if not uncached:
            return results

        fetched: Dict[str, MarketQuote] = {}
        try:
            fetched.update(await self._fetch_from_coingecko(uncached))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"CoinGecko failed: {e}, falling back to CryptoCompare...")

        missing = [s for s in uncached if s not in fetched]
        if missing:
            try:
                fetched.update(await self._fetch_from_cryptocompare(missing))
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"CryptoCompare also failed for {missing}: {e}")

        for symbol in uncached:
            if symbol not in fetched and symbol in self.STABLECOINS and self.currency == "usd":
                logger.info(f"Using peg price for stablecoin {symbol}")
                fetched[symbol] = MarketQuote(symbol=symbol, price=Decimal("1"), source="peg")

        for symbol, quote in fetched.items():
            if self.use_cache and quote.source != "peg":
                await redis_client.cache_quote(symbol, quote.to_cache())
            results[symbol] = quote

        return results

    async def get_quote(self, symbol: str) -> Optional[MarketQuote]:
        """Fetch one quote, None if no source could price it."""
        quotes = await self.get_quotes([symbol])
        return quotes.get(symbol.upper())
