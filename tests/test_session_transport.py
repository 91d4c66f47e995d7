"""
Sessions System - transport adapters (sessions/transport.py)
"""

import pytest

from kestrel.sessions import (
    CookieTransport,
    HeaderTransport,
    SessionNotStartedFault,
    TransportPolicy,
    create_transport,
)


class TestTransportPolicy:

    def test_defaults(self):
        policy = TransportPolicy()
        assert policy.adapter == "cookie"
        assert policy.cookie_name is None
        assert policy.cookie_httponly is True
        assert policy.cookie_secure is True
        assert policy.header_name == "X-Session-ID"

    def test_from_dict_ignores_unknown(self):
        policy = TransportPolicy.from_dict({"adapter": "header", "bogus": 1})
        assert policy.adapter == "header"


class TestCookieTransport:

    def test_extract_uses_session_name(self, make_session):
        transport = CookieTransport()
        session = make_session(name="app")
        headers = {"Cookie": "other=1; app=abc123; theme=dark"}
        assert transport.extract(headers, session) == "abc123"

    def test_extract_case_insensitive_header(self, make_session):
        transport = CookieTransport()
        assert transport.extract({"cookie": "app=abc"}, make_session()) == "abc"

    def test_extract_missing(self, make_session):
        transport = CookieTransport()
        session = make_session()
        assert transport.extract({}, session) is None
        assert transport.extract({"Cookie": "other=1"}, session) is None
        assert transport.extract({"Cookie": "app="}, session) is None

    def test_extract_custom_cookie_name(self, make_session):
        transport = CookieTransport(TransportPolicy(cookie_name="sid"))
        assert transport.extract({"Cookie": "sid=xyz"}, make_session()) == "xyz"

    def test_inject(self, make_session):
        transport = CookieTransport()
        session = make_session()
        session.start()
        session.commit()

        name, value = transport.inject(session)

        assert name == "Set-Cookie"
        assert value == f"app={session.id}; Path=/; HttpOnly; Secure; SameSite=Lax"

    def test_inject_all_attributes(self, make_session):
        policy = TransportPolicy(
            cookie_domain="example.com",
            cookie_max_age=3600,
            cookie_secure=False,
            cookie_samesite="strict",
        )
        session = make_session()
        session.start()

        _, value = CookieTransport(policy).inject(session)

        assert value == (
            f"app={session.id}; Path=/; Domain=example.com; Max-Age=3600; "
            "HttpOnly; SameSite=Strict"
        )

    def test_inject_without_id(self, make_session):
        with pytest.raises(SessionNotStartedFault):
            CookieTransport().inject(make_session())

    def test_clear(self, make_session):
        name, value = CookieTransport().clear(make_session())
        assert name == "Set-Cookie"
        assert value.startswith("app=deleted; Max-Age=0;")
        assert "Path=/" in value

    def test_extract_start_inject_cycle(self, make_session):
        transport = CookieTransport()
        first = make_session()
        first.start()
        first.set("profile", {"lang": "en"})
        first.commit()
        _, cookie = transport.inject(first)

        request_cookie = cookie.split(";", 1)[0]
        second = make_session()
        second.id = transport.extract({"Cookie": request_cookie}, second)
        second.start()
        assert second.get("profile").get("lang") == "en"


class TestHeaderTransport:

    def test_extract(self, make_session):
        transport = HeaderTransport()
        assert transport.extract({"x-session-id": "abc"}, make_session()) == "abc"
        assert transport.extract({}, make_session()) is None

    def test_inject(self, make_session):
        session = make_session()
        session.start()
        assert HeaderTransport().inject(session) == ("X-Session-ID", session.id)

    def test_clear_emits_nothing(self, make_session):
        assert HeaderTransport().clear(make_session()) is None


class TestCreateTransport:

    def test_cookie(self):
        assert isinstance(create_transport({"adapter": "cookie"}), CookieTransport)

    def test_header(self):
        transport = create_transport(TransportPolicy(adapter="header", header_name="X-Sid"))
        assert isinstance(transport, HeaderTransport)
        assert transport.header_name == "X-Sid"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unsupported transport adapter"):
            create_transport({"adapter": "carrier-pigeon"})
