"""
Storefront Gateway — Security Unit Tests
==========================================

What we test:
    ✅ Malicious user-agents, path traversal and injection are classified
       in rule order, first match wins
    ✅ Clean requests pass through
    ✅ Sanitizer strips scripts, tags, js: URLs, event handlers and NoSQL
       operators while keeping adjacent text
    ✅ Sanitizer is idempotent and keeps dots only in email-like strings
"""

import pytest

from gateway.exceptions import InjectionPatternError, MaliciousClientError, PathTraversalError
from gateway.security.detector import AttackDetector, AttackKind
from gateway.security.sanitizer import Sanitizer, looks_like_email, sanitize_string, sanitize_value
from tests.conftest import make_request


class TestAttackDetector:
    def setup_method(self):
        self.detector = AttackDetector()

    @pytest.mark.parametrize("agent", ["sqlmap/1.7", "Mozilla/5.0 Nikto", "GoBuster v3", "Burp Suite"])
    def test_malicious_user_agents(self, agent):
        verdict = self.detector.classify(make_request(headers={"user-agent": agent}))
        assert verdict.kind is AttackKind.MALICIOUS_CLIENT
        assert isinstance(verdict.to_exception(), MaliciousClientError)

    def test_regular_browser_passes(self):
        request = make_request(headers={"user-agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/120.0"})
        assert self.detector.classify(request) is None

    @pytest.mark.parametrize("path", ["/api/../etc/passwd", "/api/..\\windows\\system32"])
    def test_path_traversal(self, path):
        verdict = self.detector.classify(make_request(path=path))
        assert verdict.kind is AttackKind.PATH_TRAVERSAL
        assert isinstance(verdict.to_exception(), PathTraversalError)

    def test_traversal_in_query_value(self):
        verdict = self.detector.classify(make_request(query={"file": "../../secrets"}))
        assert verdict.kind is AttackKind.PATH_TRAVERSAL

    @pytest.mark.parametrize(
        "body",
        [
            {"name": "<script>alert(1)</script>"},
            {"url": "javascript:alert(1)"},
            {"email": {"$ne": None}},
            {"filter": {"$where": "this.a == 1"}},
            {"price": {"$gt": 0}},
            {"q": "1 UNION SELECT password FROM users"},
            {"q": "x; DROP TABLE products"},
            {"q": "insert into users values (1)"},
        ],
    )
    def test_injection_patterns(self, body):
        verdict = self.detector.classify(make_request(method="POST", body=body))
        assert verdict.kind is AttackKind.INJECTION
        assert isinstance(verdict.to_exception(), InjectionPatternError)

    def test_clean_body_passes(self):
        body = {"title": "Trail Runner", "price": 89.9, "tags": ["shoes", "running"]}
        assert self.detector.classify(make_request(method="POST", body=body)) is None

    def test_rule_order_user_agent_first(self):
        request = make_request(
            path="/../x",
            headers={"user-agent": "sqlmap"},
            body={"q": "<script>"},
        )
        assert self.detector.classify(request).kind is AttackKind.MALICIOUS_CLIENT

    def test_rule_order_traversal_before_injection(self):
        request = make_request(path="/../x", body={"q": "<script>"})
        assert self.detector.classify(request).kind is AttackKind.PATH_TRAVERSAL

    def test_custom_agent_list(self):
        detector = AttackDetector(malicious_agents=["evilbot"])
        assert detector.classify(make_request(headers={"user-agent": "EvilBot/2"})) is not None
        assert detector.classify(make_request(headers={"user-agent": "sqlmap"})) is None


class TestSanitizer:
    def test_script_block_removed_adjacent_text_kept(self):
        assert sanitize_string("Hello <script>alert('x')</script>World") == "Hello World"

    def test_tags_removed(self):
        assert sanitize_string("<b>bold</b> text") == "bold text"

    def test_javascript_protocol_removed(self):
        assert sanitize_string("javascript:void(0)") == "void(0)"

    def test_event_handlers_removed(self):
        assert sanitize_string("x onclick=steal() y") == "x steal() y"

    def test_nosql_operators_removed(self):
        assert "$" not in sanitize_string("{$where: 1}")
        assert sanitize_string("$ne") == "ne"

    def test_dots_removed_unless_email(self):
        assert sanitize_string("version 1.2.3") == "version 123"
        assert sanitize_string("ana.perez@example.com") == "ana.perez@example.com"
        assert looks_like_email("someone@host")
        assert not looks_like_email("host.name")

    @pytest.mark.parametrize(
        "value",
        [
            "<scr<script></script>ipt>alert(1)</script>",
            "<<b>i>nested</i>",
            "javajavascript:script:run",
            "oonclick=nclick=x",
            "$$where",
            "plain text stays",
        ],
    )
    def test_idempotent(self, value):
        once = sanitize_string(value)
        assert sanitize_string(once) == once

    def test_recursive_over_structures(self):
        body = {
            "name": "<i>Ana</i>",
            "email": "ana@example.com",
            "tags": ["<b>x</b>", 3, None, True],
            "nested": {"note": "a.b"},
        }
        assert sanitize_value(body) == {
            "name": "Ana",
            "email": "ana@example.com",
            "tags": ["x", 3, None, True],
            "nested": {"note": "ab"},
        }

    def test_sanitize_request_returns_new_descriptor(self):
        request = make_request(
            method="POST",
            path="/api/products/PRD-0001",
            query={"search": "<b>shoe</b>"},
            path_params={"product_id": "PRD-0001"},
            body={"title": "<script>x</script>Shoe"},
        )
        cleaned = Sanitizer().sanitize_request(request)

        assert cleaned.body == {"title": "Shoe"}
        assert cleaned.query["search"] == "shoe"
        assert cleaned.path_params["product_id"] == "PRD-0001"
        assert request.body == {"title": "<script>x</script>Shoe"}
