from urllib.parse import parse_qs, urlparse

from snackbuilder.preview import embed_url, snack_url


def test_embed_url_carries_encoded_code_url():
    code_url = "https://bucket.example/snacks/a.json?X-Amz-Signature=abc&X-Amz-Expires=60"
    url = embed_url(code_url, sdk_version="53.0.0", name="LLM Preview", t=42)
    parsed = urlparse(url)
    assert parsed.netloc == "snack.expo.dev"
    assert parsed.path == "/embedded"
    q = parse_qs(parsed.query)
    assert q["codeUrl"] == [code_url]
    assert q["sdkVersion"] == ["53.0.0"]
    assert q["name"] == ["LLM Preview"]
    assert q["preview"] == ["true"]
    assert q["supportedPlatforms"] == ["ios,android,web"]
    assert q["t"] == ["42"]


def test_snack_url_is_direct_link():
    url = snack_url("https://x/y.json", sdk_version="53.0.0", name="Demo", platform="ios", t=7)
    parsed = urlparse(url)
    assert parsed.path == "/"
    q = parse_qs(parsed.query)
    assert q["platform"] == ["ios"]
    assert q["codeUrl"] == ["https://x/y.json"]
    assert "preview" not in q


def test_cache_buster_defaults_to_current_time():
    q = parse_qs(urlparse(snack_url("u", sdk_version="53.0.0", name="n")).query)
    assert int(q["t"][0]) > 0
