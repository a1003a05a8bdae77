"""Rate limit key and budget selection (no Redis needed)."""

import pytest
from starlette.requests import Request

from storecredit.auth.jwt import create_access_token
from storecredit.middleware.rate_limit import WRITE_RULE, RateLimitMiddleware, client_key


def _request(method: str = "GET", path: str = "/api/store-manager/credit/summary", headers=None):
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": ("10.0.0.7", 51000),
        "server": ("test", 80),
        "scheme": "http",
        "root_path": "",
    }
    return Request(scope)


@pytest.mark.unit
class TestClientKey:
    def test_token_keys_by_store_and_user(self):
        token = create_access_token("user-1", "store_manager", ["credit.read"], store_id="store-9")
        request = _request(headers={"Authorization": f"Bearer {token}"})
        assert client_key(request) == "store:store-9:user:user-1"

    def test_invalid_token_falls_back_to_ip(self):
        request = _request(headers={"Authorization": "Bearer nope"})
        assert client_key(request) == "ip:10.0.0.7"

    def test_forwarded_for_first_hop(self):
        request = _request(headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})
        assert client_key(request) == "ip:203.0.113.5"


@pytest.mark.unit
class TestRuleFor:
    def setup_method(self):
        self.limiter = RateLimitMiddleware(app=None, default_limit=100, default_window=60)

    def test_reads_use_default(self):
        assert self.limiter.rule_for(_request()) == (100, 60)

    def test_writes_are_tighter(self):
        request = _request("POST", "/api/store-manager/customers/c1/credit-payment")
        assert self.limiter.rule_for(request) == WRITE_RULE

    def test_audit_has_its_own_budget(self):
        assert self.limiter.rule_for(_request(path="/api/store-manager/credit/audit")) == (5, 60)
