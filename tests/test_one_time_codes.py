"""Tests for emailed one-time codes: email verification and password reset."""

import unittest
from datetime import timedelta
from unittest.mock import MagicMock

from lexauth.core.errors import AuthenticationError, ValidationError
from lexauth.core.security import PasswordHasher
from lexauth.services.container import ServiceContainer
from lexauth.services.one_time_codes import OneTimeCodeService
from tests.support import RecordingEmailSender, TempDatabase, make_settings


class OneTimeCodeTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = TempDatabase()
        self.sender = RecordingEmailSender()
        self.services = ServiceContainer.build(
            make_settings(), self.db.session_factory, email_sender=self.sender
        )
        self.codes = self.services.codes
        _, self.user = self.services.auth.register("alice", "alice@x.com", "secret1")

    def tearDown(self) -> None:
        self.db.close()

    def _service(self, **kwargs: object) -> OneTimeCodeService:
        values: dict[str, object] = {
            "store": self.services.store,
            "hasher": PasswordHasher(rounds=4),
            "sender": self.sender,
        }
        values.update(kwargs)
        return OneTimeCodeService(**values)


class TestSendCode(OneTimeCodeTestCase):
    def test_sends_numeric_code(self) -> None:
        self.assertTrue(self.codes.send_code("Alice@X.com", "email-verification"))
        address, code, purpose = self.sender.sent[-1]
        self.assertEqual(address, "alice@x.com")
        self.assertEqual(purpose, "email-verification")
        self.assertEqual(len(code), 6)
        self.assertTrue(code.isdigit())

    def test_unknown_email_sends_nothing(self) -> None:
        self.assertFalse(self.codes.send_code("nobody@x.com", "email-verification"))
        self.assertEqual(self.sender.sent, [])

    def test_invalid_input(self) -> None:
        with self.assertRaises(ValidationError):
            self.codes.send_code("alice@x.com", "sign-in")
        with self.assertRaises(ValidationError):
            self.codes.send_code("not-an-email", "email-verification")

    def test_sender_failure_keeps_code_usable(self) -> None:
        failing = MagicMock()
        failing.send_one_time_code.side_effect = ConnectionError("smtp down")
        service = self._service(sender=failing)
        self.assertTrue(service.send_code("alice@x.com", "email-verification"))
        code = failing.send_one_time_code.call_args.args[1]
        service.verify_email("alice@x.com", code)
        self.assertTrue(self.services.store.find_by_id(self.user.id).email_verified)


class TestVerifyEmail(OneTimeCodeTestCase):
    def test_verifies_and_activates(self) -> None:
        self.codes.send_code("alice@x.com", "email-verification")
        self.codes.verify_email("alice@x.com", self.sender.last_code())
        stored = self.services.store.find_by_id(self.user.id)
        self.assertTrue(stored.email_verified)
        self.assertEqual(stored.status, "active")

    def test_code_is_single_use(self) -> None:
        self.codes.send_code("alice@x.com", "email-verification")
        code = self.sender.last_code()
        self.codes.verify_email("alice@x.com", code)
        with self.assertRaises(ValidationError):
            self.codes.verify_email("alice@x.com", code)

    def test_new_code_retires_old_one(self) -> None:
        self.codes.send_code("alice@x.com", "email-verification")
        first = self.sender.last_code()
        self.codes.send_code("alice@x.com", "email-verification")
        second = self.sender.last_code()
        if first != second:
            with self.assertRaises(ValidationError):
                self.codes.verify_email("alice@x.com", first)
        self.codes.verify_email("alice@x.com", second)

    def test_attempt_limit(self) -> None:
        service = self._service(max_attempts=3)
        service.send_code("alice@x.com", "email-verification")
        code = self.sender.last_code()
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(3):
            with self.assertRaises(ValidationError):
                service.verify_email("alice@x.com", wrong)
        with self.assertRaises(ValidationError):
            service.verify_email("alice@x.com", code)

    def test_expired_code(self) -> None:
        service = self._service(ttl=timedelta(seconds=-1))
        service.send_code("alice@x.com", "email-verification")
        with self.assertRaises(ValidationError):
            service.verify_email("alice@x.com", self.sender.last_code())

    def test_purposes_do_not_mix(self) -> None:
        self.codes.send_code("alice@x.com", "forget-password")
        with self.assertRaises(ValidationError):
            self.codes.verify_email("alice@x.com", self.sender.last_code())


class TestResetPassword(OneTimeCodeTestCase):
    def test_reset_replaces_password(self) -> None:
        self.codes.send_code("alice@x.com", "forget-password")
        self.codes.reset_password("alice@x.com", self.sender.last_code(), "secret9")
        with self.assertRaises(AuthenticationError):
            self.services.auth.login("alice", "secret1")
        self.services.auth.login("alice", "secret9")

    def test_reset_validates_new_password_before_spending_code(self) -> None:
        self.codes.send_code("alice@x.com", "forget-password")
        code = self.sender.last_code()
        with self.assertRaises(ValidationError):
            self.codes.reset_password("alice@x.com", code, "123")
        self.codes.reset_password("alice@x.com", code, "secret9")

    def test_deleted_account_cannot_reset(self) -> None:
        self.codes.send_code("alice@x.com", "forget-password")
        code = self.sender.last_code()
        self.services.auth.soft_delete(self.user.id)
        with self.assertRaises(ValidationError):
            self.codes.reset_password("alice@x.com", code, "secret9")


if __name__ == "__main__":
    unittest.main()
