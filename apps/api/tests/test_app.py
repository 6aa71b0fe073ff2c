#!/usr/bin/env python3

from __future__ import annotations

import os
import unittest

from fastapi.testclient import TestClient

from apps.api.vidrelay_api.config import DeploymentMode, load_settings

from apps.api.tests.relay_fakes import build_test_app


class AppSurfaceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app = build_test_app()
        self.client = TestClient(self.app)

    def test_health_reports_status_and_mode(self) -> None:
        res = self.client.get("/health")

        self.assertEqual(res.status_code, 200)
        payload = res.json()
        self.assertEqual(payload["status"], "OK")
        self.assertEqual(payload["mode"], "persistent")
        self.assertGreaterEqual(payload["uptime"], 0)
        self.assertTrue(payload["timestamp"].endswith("Z"))

    def test_landing_page_served_in_persistent_mode(self) -> None:
        for path in ("/", "/index.html"):
            with self.subTest(path=path):
                res = self.client.get(path)
                self.assertEqual(res.status_code, 200)
                self.assertIn("text/html", res.headers["content-type"])
                self.assertIn("/download?url=", res.text)

    def test_landing_page_redirects_in_per_invocation_mode(self) -> None:
        app = build_test_app(deployment_mode=DeploymentMode.PER_INVOCATION)
        client = TestClient(app)

        res = client.get("/", follow_redirects=False)

        self.assertEqual(res.status_code, 302)
        self.assertEqual(res.headers["location"], "/index.html")
        self.assertEqual(client.get("/index.html").status_code, 200)

    def test_cors_headers_on_simple_request(self) -> None:
        res = self.client.get("/health", headers={"Origin": "https://example.com"})

        self.assertEqual(res.headers["access-control-allow-origin"], "*")

    def test_options_is_always_ok(self) -> None:
        for path in ("/download", "/health", "/does-not-exist"):
            with self.subTest(path=path):
                res = self.client.options(path)
                self.assertEqual(res.status_code, 200)
                self.assertEqual(res.text, "OK")

    def test_cors_preflight(self) -> None:
        res = self.client.options(
            "/download",
            headers={
                "Origin": "https://example.com",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.headers["access-control-allow-origin"], "*")
        self.assertIn("GET", res.headers["access-control-allow-methods"])

    def test_preflight_never_rejected_for_unlisted_method_or_header(self) -> None:
        requests = [
            {"Access-Control-Request-Method": "PATCH"},
            {"Access-Control-Request-Method": "GET", "Access-Control-Request-Headers": "X-Custom-Token"},
        ]
        for extra in requests:
            with self.subTest(headers=extra):
                res = self.client.options("/download", headers={"Origin": "https://example.com", **extra})
                self.assertEqual(res.status_code, 200)
                self.assertEqual(res.text, "OK")
                self.assertEqual(res.headers["access-control-allow-origin"], "*")
                self.assertIn("Authorization", res.headers["access-control-allow-headers"])

    def test_preflight_with_restricted_origins(self) -> None:
        app = build_test_app(cors_origins=("https://app.example",))
        client = TestClient(app)
        preflight = {"Access-Control-Request-Method": "GET"}

        allowed = client.options("/download", headers={"Origin": "https://app.example", **preflight})
        other = client.options("/download", headers={"Origin": "https://evil.example", **preflight})

        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.headers["access-control-allow-origin"], "https://app.example")
        self.assertEqual(allowed.headers["access-control-allow-credentials"], "true")
        self.assertEqual(other.status_code, 200)
        self.assertNotIn("access-control-allow-origin", other.headers)

    def test_unknown_route_returns_french_404(self) -> None:
        res = self.client.get("/nope")

        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"error": "Page non trouvée"})

    def test_wrong_method_returns_french_405(self) -> None:
        res = self.client.post("/download")

        self.assertEqual(res.status_code, 405)
        self.assertEqual(res.json(), {"error": "Méthode non autorisée"})

    def test_sweeper_runs_only_in_persistent_mode(self) -> None:
        with TestClient(self.app):
            self.assertTrue(self.app.state.rate_limit_sweeper.status()["running"])
        self.assertFalse(self.app.state.rate_limit_sweeper.status()["running"])

        app = build_test_app(deployment_mode=DeploymentMode.PER_INVOCATION)
        with TestClient(app):
            self.assertFalse(app.state.rate_limit_sweeper.status()["running"])


class SettingsTests(unittest.TestCase):
    _env_keys = (
        "VIDRELAY_DEPLOYMENT_MODE",
        "VERCEL",
        "VIDRELAY_RATE_LIMIT_MAX_REQUESTS",
        "VIDRELAY_RATE_LIMIT_WINDOW_SECONDS",
        "VIDRELAY_UPSTREAM_TIMEOUT_SECONDS",
        "VIDRELAY_CORS_ORIGINS",
        "VIDRELAY_TRUST_FORWARDED_FOR",
        "VIDRELAY_LOG_LEVEL",
        "HOST",
        "PORT",
    )

    def setUp(self) -> None:
        self._env_backup = {k: os.environ.get(k) for k in self._env_keys}
        for key in self._env_keys:
            os.environ.pop(key, None)

    def tearDown(self) -> None:
        for key, value in self._env_backup.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    def test_defaults(self) -> None:
        settings = load_settings()

        self.assertIs(settings.deployment_mode, DeploymentMode.PERSISTENT)
        self.assertEqual(settings.rate_limit_max_requests, 5)
        self.assertEqual(settings.rate_limit_window_seconds, 60)
        self.assertEqual(settings.upstream_timeout_seconds, 25.0)
        self.assertEqual(settings.cors_origins, ("*",))
        self.assertFalse(settings.trust_forwarded_for)
        self.assertEqual(settings.port, 3000)
        self.assertTrue(settings.sweeper_enabled)
        self.assertFalse(settings.redirect_landing_page)

    def test_vercel_platform_selects_per_invocation(self) -> None:
        os.environ["VERCEL"] = "1"

        settings = load_settings()

        self.assertIs(settings.deployment_mode, DeploymentMode.PER_INVOCATION)
        self.assertTrue(settings.trust_forwarded_for)
        self.assertFalse(settings.sweeper_enabled)
        self.assertTrue(settings.redirect_landing_page)

    def test_explicit_mode_wins_over_platform(self) -> None:
        os.environ["VERCEL"] = "1"
        os.environ["VIDRELAY_DEPLOYMENT_MODE"] = "persistent"

        self.assertIs(load_settings().deployment_mode, DeploymentMode.PERSISTENT)

    def test_overrides_and_bad_values(self) -> None:
        os.environ["VIDRELAY_RATE_LIMIT_MAX_REQUESTS"] = "10"
        os.environ["VIDRELAY_RATE_LIMIT_WINDOW_SECONDS"] = "abc"
        os.environ["VIDRELAY_UPSTREAM_TIMEOUT_SECONDS"] = "-3"
        os.environ["VIDRELAY_CORS_ORIGINS"] = "https://a.example, https://b.example,"
        os.environ["VIDRELAY_LOG_LEVEL"] = "debug"
        os.environ["PORT"] = "8080"

        with self.assertLogs("vidrelay_api.config", level="WARNING"):
            settings = load_settings()

        self.assertEqual(settings.rate_limit_max_requests, 10)
        self.assertEqual(settings.rate_limit_window_seconds, 60)
        self.assertEqual(settings.upstream_timeout_seconds, 25.0)
        self.assertEqual(settings.cors_origins, ("https://a.example", "https://b.example"))
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertEqual(settings.port, 8080)


if __name__ == "__main__":
    unittest.main()
