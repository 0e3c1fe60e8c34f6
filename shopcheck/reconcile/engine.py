"""Comparison of reference spreadsheet rows against scraped product records."""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from shopcheck import metrics
from shopcheck.ai.json_recovery import parse_json_response
from shopcheck.ai.llm_service import LLMService, llm_service
from shopcheck.ai.prompts import RECONCILIATION_SYSTEM_PROMPT, ReconciliationPrompt
from shopcheck.config import settings
from shopcheck.reconcile.file_ingest import ReferenceRow, fetch_reference_rows

logger = logging.getLogger(__name__)

REPORT_BUCKETS = (
    "matching_products",
    "products_only_in_excel",
    "products_only_in_scraped_data",
)


@dataclass
class ReconciliationReport:
    """LLM comparison outcome; buckets are always present, possibly empty."""

    matching_products: List[Dict[str, Any]] = field(default_factory=list)
    products_only_in_excel: List[Dict[str, Any]] = field(default_factory=list)
    products_only_in_scraped_data: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_response(cls, parsed: Dict[str, Any]) -> "ReconciliationReport":
        buckets = {}
        for name in REPORT_BUCKETS:
            value = parsed.get(name)
            buckets[name] = [entry for entry in value if isinstance(entry, dict)] if isinstance(value, list) else []
        return cls(**buckets)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "matching_products": self.matching_products,
            "products_only_in_excel": self.products_only_in_excel,
            "products_only_in_scraped_data": self.products_only_in_scraped_data,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class FileProcessingResult:
    """Result of reconciling crawled products against a reference file."""

    file_url: str
    products_count: int
    products_data: List[Dict[str, Any]]
    file_processing_status: str
    comparison_results: Optional[ReconciliationReport] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.file_processing_status == "success"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "fileUrl": self.file_url,
            "productsCount": self.products_count,
            "productsData": self.products_data,
            "fileProcessingStatus": self.file_processing_status,
        }
        if self.comparison_results is not None:
            data["comparisonResults"] = self.comparison_results.to_dict()
        if self.error:
            data["error"] = self.error
        return data


ReferenceFetcher = Callable[[str], Awaitable[List[ReferenceRow]]]


class ReconciliationEngine:
    """Ingests reference files and compares them with scraped data via the LLM."""

    def __init__(
        self,
        llm: LLMService = llm_service,
        fetcher: ReferenceFetcher = fetch_reference_rows,
    ):
        self.llm = llm
        self.fetcher = fetcher

    async def ingest(self, file_url: str) -> List[ReferenceRow]:
        """Download and parse a reference file into header -> value rows."""
        return await self.fetcher(file_url)

    async def reconcile(
        self,
        reference_rows: List[ReferenceRow],
        scraped_records: List[Optional[Dict[str, Any]]],
    ) -> ReconciliationReport:
        """
        Compare reference rows with scraped product records.

        Never raises: malformed inputs and LLM failures produce an empty
        report with `error` set.
        """
        try:
            prompt = ReconciliationPrompt(
                reference_rows=reference_rows,
                scraped_records=scraped_records,
            )
            response_text = await self.llm.call_llm(
                prompt=prompt.to_prompt(),
                system_prompt=RECONCILIATION_SYSTEM_PROMPT,
                model=settings.llm_comparison_model,
                max_tokens=settings.llm_comparison_max_tokens,
                force_json=True,
            )
        except Exception as e:
            metrics.record_llm_call("reconciliation", "error")
            logger.error(f"LLM comparison error: {e}")
            return ReconciliationReport(error=str(e) or type(e).__name__)

        parsed = parse_json_response(response_text or "{}", expected=dict)
        if parsed is None:
            metrics.record_llm_call("reconciliation", "unparseable")
            logger.error("Failed to parse comparison response as JSON")
            return ReconciliationReport(error="Comparison response was not valid JSON")

        metrics.record_llm_call("reconciliation", "success")
        report = ReconciliationReport.from_response(parsed)
        logger.info(
            f"Comparison: {len(report.matching_products)} matching, "
            f"{len(report.products_only_in_excel)} only in file, "
            f"{len(report.products_only_in_scraped_data)} only scraped"
        )
        return report

    async def process_products_and_file(
        self,
        file_url: str,
        products: List[Dict[str, Any]],
    ) -> FileProcessingResult:
        """
        Reconcile crawled products against the reference file at `file_url`.

        Args:
            file_url: Location of an .xlsx, .xls or .csv file
            products: Product summaries ({url, hasHtml, data}); echoed unchanged

        Returns:
            FileProcessingResult with status "success" or "error"
        """
        logger.info(f"Processing {len(products)} products against {file_url}")

        try:
            reference_rows = await self.ingest(file_url)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Error processing file: {message}")
            metrics.reconciliations_total.labels(status="error").inc()
            return FileProcessingResult(
                file_url=file_url,
                products_count=len(products),
                products_data=products,
                file_processing_status="error",
                error=message,
            )

        scraped_records = [product.get("data") for product in products]
        report = await self.reconcile(reference_rows, scraped_records)

        status = "error" if report.error else "success"
        metrics.reconciliations_total.labels(status=status).inc()
        return FileProcessingResult(
            file_url=file_url,
            products_count=len(products),
            products_data=products,
            file_processing_status=status,
            comparison_results=report,
            error=report.error,
        )

