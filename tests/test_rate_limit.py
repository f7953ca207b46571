import redis
from cfa_practice.core import cache

def test_login_is_rate_limited(client, student):
    for _ in range(10):
        assert client.post("/api/login", json={"username": "student", "password": "wrong-pass"}).status_code == 401
    r = client.post("/api/login", json={"username": "student", "password": "wrong-pass"})
    assert r.status_code == 429 and r.json()["error"]["message"] == "Too many requests, please try again later"

def test_limits_are_per_client_ip(client, student):
    for _ in range(10):
        client.post("/api/login", json={"username": "student", "password": "wrong-pass"}, headers={"X-Forwarded-For": "10.0.0.1"})
    assert client.post("/api/login", json={"username": "student", "password": "secret123"},
                       headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200

def test_counter_expires():
    allowed, count = cache.check_rate_limit("unit", "1.2.3.4", 2, 60)
    assert allowed and count == 1
    assert 0 < cache.redis_client.ttl(cache.rate_limit_key("unit", "1.2.3.4")) <= 60

def test_fails_open_without_redis(monkeypatch):
    class Down:
        def pipeline(self):
            raise redis.ConnectionError("redis down")
    monkeypatch.setattr(cache, "redis_client", Down())
    assert cache.check_rate_limit("unit", "1.2.3.4", 1, 60) == (True, 0)
