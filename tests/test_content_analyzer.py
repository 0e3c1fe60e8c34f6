"""Tests for block detection and DOM sanitising."""

from shopcheck.ingest.content_analyzer import detect_block, is_valid_page_source, sanitize_html


class TestDetectBlock:
    """Test block page detection."""

    def test_body_text_patterns(self):
        assert detect_block("ACCESS DENIED - reference #18", "Shop") == "access denied"
        assert detect_block("We think you are a bot. Bot detected.", "") == "bot detected"

    def test_title_status_tokens(self):
        assert detect_block("", "403 Forbidden") == "title:403"
        assert detect_block(None, "Error 429: Too Many Requests") == "title:429"

    def test_normal_page(self):
        assert detect_block("Phones and accessories", "Phones | Shop") is None
        assert detect_block(None, None) is None


class TestSanitizeHtml:
    """Test DOM sanitising."""

    def test_removes_scripts_media_and_attributes(self):
        html = """
        <html><head><title>x</title><style>body{}</style></head>
        <body data-page="home">
          <div class="card" id="p1" onclick="track()" data-sku="9">
            <a href="/product/1" target="_blank" style="color:red">Phone</a>
            <img src="phone.jpg" alt="phone">
            <script>window.dataLayer = [];</script>
            <noscript>enable js</noscript>
            <svg><image href="x.png"></image></svg>
            <iframe src="https://ads.example"></iframe>
          </div>
        </body></html>
        """

        markup = sanitize_html(html)

        assert 'class="card"' in markup
        assert 'id="p1"' in markup
        assert 'href="/product/1"' in markup
        assert "Phone" in markup
        for removed in ("onclick", "data-sku", "target=", "style=", "<img", "<script",
                        "dataLayer", "<noscript", "<svg", "<iframe", "<body"):
            assert removed not in markup

    def test_missing_html(self):
        assert sanitize_html(None) is None
        assert sanitize_html("") is None


class TestPageValidity:
    """Test the page-source length threshold."""

    def test_threshold_is_exclusive(self):
        assert not is_valid_page_source("a" * 1000)
        assert is_valid_page_source("a" * 1001)

    def test_none_is_invalid(self):
        assert not is_valid_page_source(None)
        assert not is_valid_page_source("")

    def test_custom_threshold(self):
        assert is_valid_page_source("abc", min_length=2)
