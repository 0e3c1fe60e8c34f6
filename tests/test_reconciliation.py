"""Tests for reconciliation against reference files."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from shopcheck.config import settings
from shopcheck.exceptions import FileFetchError
from shopcheck.reconcile.engine import ReconciliationEngine, ReconciliationReport
from shopcheck.reconcile.file_ingest import fetch_reference_rows

FILE_URL = "https://files.example/reference.xlsx"

PRODUCTS = [
    {
        "url": "https://shop.example/product/1",
        "hasHtml": True,
        "data": {"url": "https://shop.example/product/1", "title": "Phone", "price": "€10"},
    },
    {"url": "https://shop.example/product/2", "hasHtml": False, "data": None},
]

ROWS = [{"Product URL": "https://shop.example/product/1", "Price": "12"}]


def fetcher_returning(rows):
    async def fetch(file_url):
        return rows

    return fetch


class TestReconcile:
    """Test the LLM comparison step."""

    @pytest.mark.asyncio
    async def test_buckets_filled_from_response(self):
        llm = AsyncMock()
        llm.call_llm.return_value = json.dumps({
            "matching_products": [{"Product URL": PRODUCTS[0]["url"], "Original Price": "12"}],
            "products_only_in_scraped_data": "none",
        })
        engine = ReconciliationEngine(llm=llm, fetcher=fetcher_returning(ROWS))

        report = await engine.reconcile(ROWS, [PRODUCTS[0]["data"]])

        assert report.matching_products == [{"Product URL": PRODUCTS[0]["url"], "Original Price": "12"}]
        assert report.products_only_in_excel == []
        assert report.products_only_in_scraped_data == []
        assert report.error is None

        kwargs = llm.call_llm.call_args.kwargs
        assert kwargs["force_json"] is True
        assert kwargs["model"] == settings.llm_comparison_model
        assert kwargs["max_tokens"] == settings.llm_comparison_max_tokens

    @pytest.mark.asyncio
    async def test_llm_error_gives_empty_report(self):
        llm = AsyncMock()
        llm.call_llm.side_effect = RuntimeError("quota exceeded")
        engine = ReconciliationEngine(llm=llm, fetcher=fetcher_returning(ROWS))

        report = await engine.reconcile(ROWS, [])

        assert report.to_dict() == {
            "matching_products": [],
            "products_only_in_excel": [],
            "products_only_in_scraped_data": [],
            "error": "quota exceeded",
        }

    @pytest.mark.asyncio
    async def test_invalid_json_gives_empty_report(self):
        llm = AsyncMock()
        llm.call_llm.return_value = "Sorry, I cannot compare these."
        engine = ReconciliationEngine(llm=llm, fetcher=fetcher_returning(ROWS))

        report = await engine.reconcile(ROWS, [])

        assert report.matching_products == []
        assert report.error

    @pytest.mark.asyncio
    async def test_unserializable_reference_value_gives_empty_report(self):
        llm = AsyncMock()
        engine = ReconciliationEngine(llm=llm, fetcher=fetcher_returning(ROWS))

        report = await engine.reconcile([{"Product URL": object()}], [])

        assert report.products_only_in_excel == []
        assert report.error
        llm.call_llm.assert_not_called()


class TestProcessProductsAndFile:
    """Test the ingest + reconcile flow."""

    @pytest.mark.asyncio
    async def test_success(self):
        llm = AsyncMock()
        llm.call_llm.return_value = json.dumps({
            "matching_products": [],
            "products_only_in_excel": [],
            "products_only_in_scraped_data": [],
        })
        engine = ReconciliationEngine(llm=llm, fetcher=fetcher_returning(ROWS))

        result = await engine.process_products_and_file(FILE_URL, PRODUCTS)

        assert result.success
        wire = result.to_dict()
        assert wire["fileProcessingStatus"] == "success"
        assert wire["productsCount"] == 2
        assert wire["productsData"] is PRODUCTS
        assert set(wire["comparisonResults"]) == {
            "matching_products",
            "products_only_in_excel",
            "products_only_in_scraped_data",
        }
        assert "error" not in wire

        prompt = llm.call_llm.call_args.kwargs["prompt"]
        assert '"Price": "12"' in prompt
        assert "null" in prompt  # the product without data

    @pytest.mark.asyncio
    async def test_unreachable_file_url(self):
        def refuse(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        llm = AsyncMock()
        engine = ReconciliationEngine(
            llm=llm,
            fetcher=lambda url: fetch_reference_rows(url, client=client),
        )

        result = await engine.process_products_and_file(FILE_URL, PRODUCTS)
        await client.aclose()

        assert result.file_processing_status == "error"
        assert result.error
        assert result.products_data is PRODUCTS
        assert result.products_count == 2
        assert result.comparison_results is None
        llm.call_llm.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_file_type(self):
        engine = ReconciliationEngine(llm=AsyncMock())

        result = await engine.process_products_and_file("https://files.example/ref.docx", PRODUCTS)

        assert result.file_processing_status == "error"
        assert result.error.startswith("Unsupported file type.")

    @pytest.mark.asyncio
    async def test_fetch_error_message(self):
        async def fetch(file_url):
            raise FileFetchError(file_url, 403, "Forbidden")

        engine = ReconciliationEngine(llm=AsyncMock(), fetcher=fetch)

        result = await engine.process_products_and_file(FILE_URL, [])

        assert result.to_dict()["error"] == "Failed to fetch file: 403 Forbidden"
        assert result.products_count == 0

    @pytest.mark.asyncio
    async def test_failed_comparison_reports_error_with_empty_report(self):
        llm = AsyncMock()
        llm.call_llm.side_effect = RuntimeError("LLM down")
        engine = ReconciliationEngine(llm=llm, fetcher=fetcher_returning(ROWS))

        result = await engine.process_products_and_file(FILE_URL, PRODUCTS)

        assert result.file_processing_status == "error"
        assert result.error == "LLM down"
        assert result.comparison_results == ReconciliationReport(error="LLM down")

    @pytest.mark.asyncio
    async def test_non_object_product_data_reports_error(self):
        llm = AsyncMock()
        engine = ReconciliationEngine(llm=llm, fetcher=fetcher_returning(ROWS))
        products = [{"url": "https://shop.example/product/1", "hasHtml": True, "data": "raw text"}]

        result = await engine.process_products_and_file(FILE_URL, products)

        assert result.file_processing_status == "error"
        assert result.error
        assert result.comparison_results.matching_products == []
        assert result.products_data is products
        llm.call_llm.assert_not_called()
