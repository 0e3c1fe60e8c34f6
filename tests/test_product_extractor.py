"""Tests for product data extraction."""

import json
from unittest.mock import AsyncMock

import pytest

from shopcheck.ai.product_extractor import (
    LOGIN_PHRASES,
    ProductExtractor,
    canonicalize_category,
    clean_html,
    detect_login_wall,
    resolve_price,
)
from shopcheck.models import LOGIN_REQUIRED

URL = "https://shop.example/product/1"
HTML = "<div class='title'><h1>Phone X</h1><span>€199.00</span></div>"


def llm_returning(payload):
    llm = AsyncMock()
    llm.call_llm.return_value = payload if isinstance(payload, str) else json.dumps(payload)
    return llm


class TestCanonicalizeCategory:
    """Test breadcrumb reduction."""

    def test_separator_takes_last_segment(self):
        assert canonicalize_category("Electronics > Phones > Smartphones") == "Smartphones"
        assert canonicalize_category("Home / Garden / Tools ") == "Tools"
        assert canonicalize_category("Hjem | Have") == "Have"
        assert canonicalize_category("Start » Telefoner » Mobiler") == "Mobiler"

    def test_first_listed_separator_wins(self):
        assert canonicalize_category("A / B > C") == "C"

    def test_long_phrase_uses_last_word(self):
        assert canonicalize_category("Best cheap mobile phones") == "phones"

    def test_short_phrase_unchanged(self):
        assert canonicalize_category("Mobile Phones") == "Mobile Phones"
        assert canonicalize_category("Big mobile phones") == "Big mobile phones"

    def test_empty(self):
        assert canonicalize_category(None) is None
        assert canonicalize_category("") is None


class TestLoginWall:
    """Test multilingual login-wall detection and the price policy."""

    def test_every_language_detected(self):
        for language, phrases in LOGIN_PHRASES.items():
            for phrase in phrases:
                assert detect_login_wall(f"<p>{phrase.upper()}</p>") == language

    def test_plain_page(self):
        assert detect_login_wall("<p>In stock</p>") is None
        assert detect_login_wall(None) is None

    def test_price_policy(self):
        assert resolve_price("199 kr", login_wall=False) == "199 kr"
        assert resolve_price("199 kr", login_wall=True) == LOGIN_REQUIRED
        assert resolve_price("Log ind for at se pris", login_wall=False) == LOGIN_REQUIRED
        assert resolve_price(None, login_wall=False) == LOGIN_REQUIRED


class TestCleanHtml:
    def test_strips_non_content(self):
        html = (
            "<header>Menu</header><nav>Links</nav><main><h1>Phone</h1>"
            "<script>var a = 1;</script><!-- c --><img src='x.png'>   <p>Great</p></main>"
            "<aside>Ads</aside><footer>Footer</footer>"
        )

        assert clean_html(html) == "<main><h1>Phone</h1> <p>Great</p></main>"


class TestProductExtractor:
    """Test LLM-backed extraction."""

    @pytest.mark.asyncio
    async def test_missing_html_skips_llm(self):
        llm = llm_returning({})
        extractor = ProductExtractor(llm=llm)

        assert await extractor.extract(URL, None) is None
        llm.call_llm.assert_not_called()

    @pytest.mark.asyncio
    async def test_product_page(self):
        llm = llm_returning({
            "isProductPage": True,
            "title": "Phone X",
            "price": "€199.00",
            "category": "Electronics > Phones > Smartphones",
            "description": "A phone.",
            "detectedLanguage": "English",
        })
        extractor = ProductExtractor(llm=llm)

        product = await extractor.extract(URL, HTML)

        assert product.to_dict() == {
            "url": URL,
            "title": "Phone X",
            "price": "€199.00",
            "category": "Smartphones",
            "description": "A phone.",
        }
        prompt = llm.call_llm.call_args.kwargs["prompt"]
        assert URL in prompt
        assert "Login wall detected: false" in prompt

    @pytest.mark.asyncio
    async def test_not_a_product_page(self):
        extractor = ProductExtractor(llm=llm_returning({"isProductPage": False, "title": "Phones"}))

        assert await extractor.extract(URL, HTML) is None

    @pytest.mark.asyncio
    async def test_login_wall_overrides_price(self):
        llm = llm_returning({"isProductPage": True, "title": "Drill", "price": "499 kr"})
        extractor = ProductExtractor(llm=llm)

        product = await extractor.extract(URL, "<p>Logga in för att se pris</p>" + HTML)

        assert product.price == LOGIN_REQUIRED
        assert "Login wall detected: true" in llm.call_llm.call_args.kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_missing_price_means_login_required(self):
        extractor = ProductExtractor(llm=llm_returning({"isProductPage": True, "title": "Drill"}))

        product = await extractor.extract(URL, HTML)

        assert product.price == LOGIN_REQUIRED

    @pytest.mark.asyncio
    async def test_fenced_response(self):
        llm = llm_returning('```json\n{"isProductPage": true, "title": "Lamp", "price": "$5"}\n```')
        extractor = ProductExtractor(llm=llm)

        product = await extractor.extract(URL, HTML)

        assert product.title == "Lamp"
        assert product.price == "$5"

    @pytest.mark.asyncio
    async def test_unparseable_response(self):
        extractor = ProductExtractor(llm=llm_returning("This page sells phones."))

        assert await extractor.extract(URL, HTML) is None

    @pytest.mark.asyncio
    async def test_llm_error(self):
        llm = AsyncMock()
        llm.call_llm.side_effect = RuntimeError("timeout")
        extractor = ProductExtractor(llm=llm)

        assert await extractor.extract(URL, HTML) is None

    @pytest.mark.asyncio
    async def test_html_truncated(self):
        llm = llm_returning({"isProductPage": False})
        extractor = ProductExtractor(llm=llm, max_html_chars=100)

        await extractor.extract(URL, "<p>" + "a" * 200 + "TAIL_MARKER</p>")

        assert "TAIL_MARKER" not in llm.call_llm.call_args.kwargs["prompt"]
