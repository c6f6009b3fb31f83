"""Access guard: bearer extraction and optional / required / role-scoped policies over HTTP."""

import time
import unittest

from fastapi import Depends
from fastapi.testclient import TestClient

from lexauth.api.guard import AuthContext, extract_bearer_token, require_roles
from lexauth.main import create_app
from tests.support import RecordingEmailSender, TempDatabase, make_settings


class TestExtractBearerToken(unittest.TestCase):
    def test_prefix_variants(self) -> None:
        self.assertEqual(extract_bearer_token("Bearer abc.def.ghi"), "abc.def.ghi")
        self.assertEqual(extract_bearer_token("bearer abc"), "abc")
        self.assertEqual(extract_bearer_token("BEARER   abc  "), "abc")
        self.assertEqual(extract_bearer_token("abc.def.ghi"), "abc.def.ghi")

    def test_no_token(self) -> None:
        self.assertIsNone(extract_bearer_token(None))
        self.assertIsNone(extract_bearer_token(""))
        self.assertIsNone(extract_bearer_token("Bearer "))
        self.assertIsNone(extract_bearer_token("Bearer    "))
        self.assertIsNone(extract_bearer_token("Bearer"))
        self.assertIsNone(extract_bearer_token("bearer"))

    def test_word_bearer_inside_token_is_kept(self) -> None:
        self.assertEqual(extract_bearer_token("bearerabc"), "bearerabc")


class GuardHttpTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = TempDatabase()
        self.addCleanup(self.db.close)
        self.app = create_app(
            make_settings(), self.db.session_factory, email_sender=RecordingEmailSender()
        )

        @self.app.get("/moderation")
        def moderation(
            context: AuthContext = Depends(require_roles("moderator", "admin")),
        ) -> dict[str, int]:
            return {"user_id": context.user_id}

        # Entering the client runs the lifespan startup that builds the services.
        self.client = self.enterContext(TestClient(self.app))
        self.services = self.app.state.services
        self.token, self.user = self.services.auth.register("alice", "alice@x.com", "secret1")

    def _auth(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


class TestRequiredPolicy(GuardHttpTestCase):
    def test_missing_header(self) -> None:
        res = self.client.get("/api/v1/auth/me")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["error"], "Authentication token must be provided")
        self.assertEqual(res.headers["WWW-Authenticate"], "Bearer")

    def test_bare_scheme_is_missing(self) -> None:
        # Servers strip trailing header whitespace, so "Bearer " arrives as "Bearer".
        res = self.client.get("/api/v1/auth/me", headers={"Authorization": "Bearer"})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["reason"], "missing_token")
        self.assertEqual(res.json()["error"], "Authentication token must be provided")

    def test_empty_bearer_is_missing(self) -> None:
        res = self.client.get("/api/v1/auth/me", headers={"Authorization": "Bearer "})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["reason"], "missing_token")

    def test_reason_specific_rejections(self) -> None:
        identity = self.services.codec.verify(self.token).identity()
        expired = self.services.codec.issue(identity, now=int(time.time()) - 7200)
        header, payload, _ = self.token.split(".")
        cases = {
            "expired_token": expired,
            "invalid_signature": f"{header}.{payload}.AAAA",
            "malformed_token": "not-a-token",
        }
        for reason, token in cases.items():
            with self.subTest(reason=reason):
                res = self.client.get("/api/v1/auth/me", headers=self._auth(token))
                self.assertEqual(res.status_code, 401)
                self.assertEqual(res.json()["reason"], reason)

    def test_prefix_is_optional(self) -> None:
        res = self.client.get("/api/v1/auth/me", headers={"Authorization": self.token})
        self.assertEqual(res.status_code, 200)
        res = self.client.get("/api/v1/auth/me", headers={"Authorization": f"bearer {self.token}"})
        self.assertEqual(res.status_code, 200)


class TestOptionalPolicy(GuardHttpTestCase):
    def test_anonymous_without_token(self) -> None:
        res = self.client.get("/api/v1/auth/session")
        self.assertEqual(res.status_code, 200)
        self.assertIsNone(res.json()["data"])

    def test_anonymous_with_bad_token(self) -> None:
        res = self.client.get("/api/v1/auth/session", headers=self._auth("garbage"))
        self.assertEqual(res.status_code, 200)
        self.assertIsNone(res.json()["data"])

    def test_principal_with_good_token(self) -> None:
        res = self.client.get("/api/v1/auth/session", headers=self._auth(self.token))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["data"]["username"], "alice")


class TestRolePolicy(GuardHttpTestCase):
    def test_unauthenticated_gets_401_not_403(self) -> None:
        for headers in ({}, self._auth("garbage")):
            with self.subTest(headers=headers):
                res = self.client.get("/moderation", headers=headers)
                self.assertEqual(res.status_code, 401)

    def test_wrong_role_gets_403(self) -> None:
        res = self.client.get("/moderation", headers=self._auth(self.token))
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["code"], "authorization")

    def test_allowed_role_passes(self) -> None:
        self.services.store.set_role(self.user.id, "moderator")
        token = self.services.auth.refresh_token(self.token)
        res = self.client.get("/moderation", headers=self._auth(token))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"user_id": self.user.id})


if __name__ == "__main__":
    unittest.main()
