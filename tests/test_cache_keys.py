"""
Storefront Gateway — Cache Key Derivation Tests
=================================================

What we test:
    ✅ Query-parameter order never changes the key
    ✅ Empty and absent query mappings derive the same key
    ✅ Method, path, query or identity differences always change the key
    ✅ Separator characters inside components cannot forge a collision
"""

from gateway.cache.keys import ANONYMOUS_IDENTITY, canonical_query, derive_cache_key, normalize_path
from gateway.pipeline.request import Identity
from tests.conftest import make_request


class TestCacheKeyDerivation:
    def test_query_order_is_irrelevant(self):
        first = make_request(query={"category": "2", "limit": "10", "page": "1"})
        second = make_request(query={"page": "1", "limit": "10", "category": "2"})
        assert derive_cache_key(first) == derive_cache_key(second)

    def test_empty_and_absent_query_are_identical(self):
        assert derive_cache_key(make_request(query={})) == derive_cache_key(make_request(query=None))
        assert derive_cache_key(make_request()) == derive_cache_key(make_request(query={}))

    def test_key_layout(self):
        key = derive_cache_key(make_request(query={"limit": "10"}))
        assert key == f"GET:/api/products:limit=10:{ANONYMOUS_IDENTITY}"

    def test_identity_changes_key(self):
        anonymous = make_request(path="/api/auth/me")
        alice = make_request(path="/api/auth/me", identity=Identity("alice"))
        bob = make_request(path="/api/auth/me", identity=Identity("bob"))
        keys = {derive_cache_key(r) for r in (anonymous, alice, bob)}
        assert len(keys) == 3

    def test_path_and_method_change_key(self):
        keys = {
            derive_cache_key(make_request(path="/api/products")),
            derive_cache_key(make_request(path="/api/products/PRD-0001")),
            derive_cache_key(make_request(method="HEAD", path="/api/products")),
        }
        assert len(keys) == 3

    def test_query_values_change_key(self):
        assert derive_cache_key(make_request(query={"page": "1"})) != derive_cache_key(
            make_request(query={"page": "2"})
        )

    def test_separators_inside_components_do_not_collide(self):
        # Without escaping, both would serialize to "a=1&b=2".
        joined = make_request(query={"a": "1&b=2"})
        split = make_request(query={"a": "1", "b": "2"})
        assert derive_cache_key(joined) != derive_cache_key(split)

        # An identity id containing ':' must not look like a path/query split.
        tricky = make_request(identity=Identity("x:y"))
        assert derive_cache_key(tricky).endswith(":user:x%3Ay")

    def test_anonymous_sentinel_differs_from_user_named_anonymous(self):
        anonymous = make_request()
        named = make_request(identity=Identity(ANONYMOUS_IDENTITY))
        assert derive_cache_key(anonymous) != derive_cache_key(named)


class TestKeyHelpers:
    def test_normalize_path(self):
        assert normalize_path("/api//products/") == "/api/products"
        assert normalize_path("/") == "/"
        assert normalize_path("") == "/"
        assert normalize_path("api/products") == "/api/products"

    def test_trailing_slash_shares_key(self):
        assert derive_cache_key(make_request(path="/api/products/")) == derive_cache_key(
            make_request(path="/api/products")
        )

    def test_canonical_query(self):
        assert canonical_query(None) == ""
        assert canonical_query({"b": "2", "a": "x y"}) == "a=x%20y&b=2"
