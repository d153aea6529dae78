"""Tests for upstream sources: HTML parsers and HTTP status handling."""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from tickerdesk.core.exceptions import FetchFailure, RateLimited
from tickerdesk.services.sources import (
    AlpacaNewsSource,
    FinvizShortsSource,
    MomoScannerSource,
    PolygonFinancialsSource,
    SecFilingsSource,
    parse_filings,
    parse_financials,
    parse_scanner_rows,
    parse_short_interest,
)


FINVIZ_HTML = """
<html><body>
<table class="financials-table">
  <thead><tr><th>Settlement Date</th><th>Short Interest</th><th>Avg Volume</th>
  <th>Short Float</th><th>Short Ratio</th></tr></thead>
  <tbody>
    <tr><td>Apr 30, 2024</td><td>1.25M</td><td>512K</td><td>12.5%</td><td>2.44</td></tr>
    <tr><td>Apr 15, 2024</td><td>1.10M</td><td>480K</td><td>11.0%</td><td>2.29</td></tr>
  </tbody>
</table>
</body></html>
"""

SEC_HTML = """
<table class="tableFile2">
  <tr><th>Filings</th><th>Format</th><th>Description</th><th>Filing Date</th></tr>
  <tr><td>S-3</td><td>Documents</td><td>Registration statement</td><td>2024-05-01</td></tr>
  <tr><td>8-K</td><td>Documents</td><td>Current report</td><td>2024-04-20</td></tr>
  <tr><td>S-3/A</td><td>Documents</td><td>Amendment</td><td>2024-04-02</td></tr>
  <tr><td>POS AM S-3</td><td>Documents</td><td>Post-effective amendment</td><td>2024-03-11</td></tr>
  <tr><td>S-3</td><td>short row</td></tr>
</table>
"""

MOMO_HTML = """
<table class="tableFixHead">
  <thead><tr><th>Symbol</th></tr></thead>
  <tbody>
    <tr><td>ABCD (HOD)</td><td>3.21</td><td>45%</td><td>5%</td><td>6.33M</td>
        <td>12M</td><td>0.4</td><td>09:31:02</td></tr>
    <tr><td>XYZ</td><td>1.00</td></tr>
  </tbody>
</table>
"""

POLYGON_PAYLOAD = {
    "results": [
        {
            "financials": {
                "income_statement": {"net_income_loss": {"value": -1500000}},
                "cash_flow_statement": {"net_cash_flow": {"value": 250000}},
                "balance_sheet": {"assets": {"value": 9000000}},
            }
        }
    ]
}


class TestParsers:
    """Tests for the HTML and JSON parsers."""

    def test_short_interest_takes_first_row(self):
        snapshot = parse_short_interest(FINVIZ_HTML)
        assert snapshot.to_document() == {
            "settlementDate": "Apr 30, 2024",
            "shortInterest": 1.25e6,
            "avgDailyVolume": 512e3,
            "shortFloat": 12.5,
            "shortRatio": 2.44,
        }

    def test_short_interest_missing_table(self):
        assert parse_short_interest("<html><body>Not found</body></html>") is None

    def test_filings_keep_matching_forms(self):
        filings = parse_filings(SEC_HTML)
        assert [f.form_type for f in filings] == ["S-3", "S-3/A"]
        assert filings[0].to_document() == {
            "formType": "S-3",
            "description": "Registration statement",
            "date": "2024-05-01",
        }

    def test_filings_none_match(self):
        assert parse_filings(SEC_HTML, form_prefix="10-K") == []

    def test_scanner_rows(self):
        rows = parse_scanner_rows(MOMO_HTML)
        assert len(rows) == 1
        assert rows[0].symbol == "ABCD (HOD)"
        assert rows[0].float == "6.33M"
        assert rows[0].time == "09:31:02"

    def test_financials(self):
        snapshot = parse_financials(POLYGON_PAYLOAD)
        assert snapshot.to_document() == {
            "netIncome": -1500000.0,
            "netCashFlow": 250000.0,
            "cash": 9000000.0,
        }

    def test_financials_empty_results(self):
        assert parse_financials({"results": []}) is None
        assert parse_financials({}) is None

    @pytest.mark.parametrize("value", ["n/a", [1]])
    def test_financials_non_numeric_value(self, value):
        payload = {"results": [{"financials": {"income_statement": {"net_income_loss": {"value": value}}}}]}
        with pytest.raises(ValueError):
            parse_financials(payload)

    def test_financials_unexpected_layout(self):
        with pytest.raises(ValueError):
            parse_financials({"results": [{"financials": {"income_statement": "n/a"}}]})


class TestHttpSources:
    """Tests for request building and status mapping over a mock transport."""

    @pytest.mark.asyncio
    async def test_finviz_request(self, mock_client):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, text=FINVIZ_HTML)

        async with mock_client(handler) as client:
            snapshot = await FinvizShortsSource(client, base_url="https://finviz.test/quote").fetch("aapl")

        assert seen == {"t": "AAPL", "ta": "1", "p": "d", "ty": "si", "b": "1"}
        assert snapshot.short_float == 12.5

    @pytest.mark.asyncio
    async def test_rate_limited(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"Retry-After": "7"})

        async with mock_client(handler) as client:
            source = SecFilingsSource(client, base_url="https://sec.test/browse")
            with pytest.raises(RateLimited) as exc_info:
                await source.fetch("AAPL")

        assert exc_info.value.retry_after == 7.0
        assert exc_info.value.symbol == "AAPL"

    @pytest.mark.asyncio
    async def test_server_error(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with mock_client(handler) as client:
            source = PolygonFinancialsSource(client, base_url="https://poly.test", api_key="k")
            with pytest.raises(FetchFailure) as exc_info:
                await source.fetch("AAPL")

        assert exc_info.value.status == 503
        assert not isinstance(exc_info.value, RateLimited)

    @pytest.mark.asyncio
    async def test_transport_error(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(FetchFailure):
                await MomoScannerSource(client, url="https://momo.test").fetch()

    @pytest.mark.asyncio
    async def test_invalid_json(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        async with mock_client(handler) as client:
            source = PolygonFinancialsSource(client, base_url="https://poly.test", api_key="k")
            with pytest.raises(FetchFailure):
                await source.fetch("AAPL")

    @pytest.mark.asyncio
    async def test_non_numeric_financials(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            statements = {"income_statement": {"net_income_loss": {"value": "n/a"}}}
            return httpx.Response(200, json={"results": [{"financials": statements}]})

        async with mock_client(handler) as client:
            source = PolygonFinancialsSource(client, base_url="https://poly.test", api_key="k")
            with pytest.raises(FetchFailure) as exc_info:
                await source.fetch("AAPL")
        assert exc_info.value.details["symbol"] == "AAPL"


class TestAlpacaNews:
    """Tests for AlpacaNewsSource."""

    def test_build_params(self):
        source = AlpacaNewsSource(
            client=httpx.AsyncClient(), key_id="k", secret_key="s", lookback_hours=24, limit=50
        )
        now = datetime(2024, 5, 10, 13, 30, tzinfo=timezone.utc)
        assert source.build_params(["AAPL", "MSFT"], now) == {
            "symbols": "AAPL,MSFT",
            "start": "2024-05-09T13:30:00Z",
            "limit": 50,
            "sort": "desc",
        }

    @pytest.mark.asyncio
    async def test_fetch_sends_credentials(self, mock_client):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers["APCA-API-KEY-ID"]
            seen["secret"] = request.headers["APCA-API-SECRET-KEY"]
            return httpx.Response(
                200, json={"news": [{"id": 1, "headline": "A"}, {"headline": "no id"}]}
            )

        async with mock_client(handler) as client:
            source = AlpacaNewsSource(client, base_url="https://news.test", key_id="k", secret_key="s")
            items = await source.fetch(["AAPL"])

        assert seen == {"key": "k", "secret": "s"}
        assert items == [{"id": 1, "headline": "A"}]


    @pytest.mark.asyncio
    async def test_malformed_items_are_dropped(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            news = [
                {"id": 1, "headline": None},
                {"id": 2, "headline": "Fine", "created_at": 7},
                {"id": 3, "headline": "Kept"},
            ]
            return httpx.Response(200, json={"news": news})

        async with mock_client(handler) as client:
            source = AlpacaNewsSource(client, base_url="https://news.test", key_id="k", secret_key="s")
            items = await source.fetch(["AAPL"])

        assert [item["id"] for item in items] == [3]
    @pytest.mark.asyncio
    async def test_missing_news_list(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"message": "forbidden"})

        async with mock_client(handler) as client:
            source = AlpacaNewsSource(client, base_url="https://news.test", key_id="k", secret_key="s")
            with pytest.raises(FetchFailure):
                await source.fetch(["AAPL"])

    @pytest.mark.asyncio
    async def test_empty_batch_skips_request(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            source = AlpacaNewsSource(client, base_url="https://news.test", key_id="k", secret_key="s")
            assert await source.fetch([]) == []
