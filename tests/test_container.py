"""Service container wiring and one-time initialization."""

import importlib
import threading
import unittest
from types import SimpleNamespace
from unittest.mock import patch

from lexauth.core.errors import ConfigurationError
from lexauth.models import Base
from lexauth.scripts import create_user
from lexauth.services.container import ServiceContainer, get_services, init_services
from tests.support import RecordingEmailSender, TempDatabase, make_settings


class ContainerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = TempDatabase()
        self.addCleanup(self.db.close)
        self.settings = make_settings()


class TestInitServices(ContainerTestCase):
    def test_second_call_returns_existing_container(self) -> None:
        state = SimpleNamespace()
        first = init_services(state, self.settings, self.db.session_factory)
        second = init_services(state, self.settings, self.db.session_factory)
        self.assertIs(first, second)
        self.assertIs(state.services, first)

    def test_concurrent_callers_share_one_container(self) -> None:
        state = SimpleNamespace()
        results: list[ServiceContainer] = []
        lock = threading.Lock()

        def worker() -> None:
            container = init_services(state, self.settings, self.db.session_factory)
            with lock:
                results.append(container)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        self.assertEqual(len(results), 8)
        self.assertTrue(all(c is state.services for c in results))

    def test_bad_token_settings_abort_initialization(self) -> None:
        # model_copy skips validation, so the bad value reaches the container.
        settings = self.settings.model_copy(update={"JWT_EXPIRES_IN": "7x"})
        state = SimpleNamespace()
        with self.assertRaises(ConfigurationError):
            init_services(state, settings, self.db.session_factory)
        self.assertFalse(hasattr(state, "services"))

    def test_auto_create_tables(self) -> None:
        fresh = TempDatabase()
        self.addCleanup(fresh.close)
        Base.metadata.drop_all(fresh.engine)
        services = init_services(
            SimpleNamespace(),
            make_settings(AUTO_CREATE_TABLES=True),
            fresh.session_factory,
            email_sender=RecordingEmailSender(),
        )
        _, user = services.auth.register("alice", "alice@x.com", "secret1")
        self.assertEqual(user.username, "alice")


class TestGetServices(unittest.TestCase):
    def test_uninitialized_app_raises(self) -> None:
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))
        with self.assertRaises(RuntimeError):
            get_services(request)


class TestCreateUserScript(ContainerTestCase):
    def _run(self, *argv: str) -> int:
        with patch.object(create_user, "get_settings", return_value=self.settings), patch.object(
            create_user, "session_factory_from_settings", return_value=self.db.session_factory
        ):
            return create_user.main(list(argv))

    def test_creates_admin(self) -> None:
        self.assertEqual(self._run("root", "root@x.com", "secret1", "super_admin"), 0)
        services = ServiceContainer.build(self.settings, self.db.session_factory)
        stored = services.store.find_by_username("root")
        self.assertEqual(stored.role, "super_admin")
        token, _ = services.auth.login("root", "secret1")
        self.assertEqual(services.codec.verify(token).role, "super_admin")

    def test_logging_is_configured_by_main_not_on_import(self) -> None:
        with patch("logging.basicConfig") as basic_config:
            importlib.reload(create_user)
            basic_config.assert_not_called()
            self._run("root", "root@x.com", "secret1")
        basic_config.assert_called_once()
        self.assertNotIn("Z", basic_config.call_args.kwargs["datefmt"])

    def test_duplicate_exits_nonzero(self) -> None:
        self.assertEqual(self._run("root", "root@x.com", "secret1"), 0)
        with patch("sys.stderr"):
            self.assertEqual(self._run("root", "other@x.com", "secret1"), 1)


if __name__ == "__main__":
    unittest.main()
