from urllib.parse import unquote

import pytest

from yumiba import create_app


def test_admin_api_requires_auth(client, caplog):
    caplog.set_level("WARNING")
    res = client.post("/api/admin/seiseki", json={"year": 2025, "month": 1, "entries": []})
    assert res.status_code == 401
    assert res.get_json() == {"success": False, "error": "Authentication required"}
    assert client.delete("/api/admin/taikai/2025").status_code == 401
    assert any(r.getMessage().startswith("Unauthorized admin request: POST") for r in caplog.records)


def test_admin_page_redirects_to_login(client):
    res = client.get("/admin/seiseki", follow_redirects=False)
    assert res.status_code == 302
    location = unquote(res.headers["Location"])
    assert "/admin/login?callbackUrl=/admin/seiseki" in location


def test_session_email_must_be_allowed(app):
    with app.test_client() as c:
        with c.session_transaction() as sess:
            sess["admin_email"] = "stranger@example.com"
        assert c.get("/admin/taikai").status_code == 302


def test_custom_authorizer_replaces_session_check(data_root):
    app = create_app({
        "TESTING": True,
        "DATA_DIR": str(data_root),
        "SECRET_KEY": "x",
        "ADMIN_AUTHORIZER": lambda: True,
    })
    with app.test_client() as c:
        assert c.get("/admin/seiseki").status_code == 200


@pytest.fixture()
def proxy_app(data_root):
    return create_app({
        "TESTING": True,
        "DATA_DIR": str(data_root),
        "SECRET_KEY": "x",
        "ALLOWED_ADMIN_EMAILS": ["admin@example.com"],
        "ADMIN_EMAIL_HEADER": "X-Forwarded-Email",
    })


def test_login_from_proxy_header(proxy_app):
    with proxy_app.test_client() as c:
        res = c.post(
            "/admin/login?callbackUrl=/admin/taikai",
            headers={"X-Forwarded-Email": "admin@example.com"},
        )
        assert res.status_code == 302
        assert res.headers["Location"].endswith("/admin/taikai")
        # Session now carries the admin without the header
        assert c.get("/admin/seiseki").status_code == 200

        c.post("/admin/logout")
        assert c.get("/admin/seiseki").status_code == 302


def test_login_rejects_unlisted_email(proxy_app, caplog):
    caplog.set_level("WARNING")
    with proxy_app.test_client() as c:
        res = c.post("/admin/login", headers={"X-Forwarded-Email": "evil@example.com"})
        assert res.status_code == 403
    assert any("Unauthorized login attempt: evil@example.com" in r.getMessage() for r in caplog.records)


def test_login_ignores_offsite_callback(proxy_app):
    with proxy_app.test_client() as c:
        res = c.post(
            "/admin/login?callbackUrl=//evil.example.com/",
            headers={"X-Forwarded-Email": "admin@example.com"},
        )
        assert res.headers["Location"].endswith("/admin/seiseki")


def test_protected_request_signs_in_from_header(proxy_app):
    with proxy_app.test_client() as c:
        res = c.get("/admin/seiseki", headers={"X-Forwarded-Email": "admin@example.com"})
        assert res.status_code == 200


def test_login_page_renders(client):
    res = client.get("/admin/login?callbackUrl=/admin/seiseki")
    assert res.status_code == 200
    assert 'value="/admin/seiseki"' in res.get_data(as_text=True)
