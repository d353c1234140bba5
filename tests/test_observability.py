from __future__ import annotations

import unittest

from gruby_server.observability import REDACTED, ServiceFields, _before_send, scrub_sensitive


class ServiceFieldsTest(unittest.TestCase):
    def test_stamps_service_and_environment(self):
        processor = ServiceFields("gruby-server", "staging")
        event = processor(None, "info", {"event": "Product sync completed"})
        self.assertEqual(event["service"], "gruby-server")
        self.assertEqual(event["env"], "staging")

    def test_keeps_fields_already_bound(self):
        processor = ServiceFields("gruby-server", "prod")
        event = processor(None, "info", {"event": "x", "env": "canary"})
        self.assertEqual(event["env"], "canary")


class SentryScrubbingTest(unittest.TestCase):
    def test_redacts_credentials_at_any_depth(self):
        scrubbed = scrub_sensitive(
            {
                "Authorization": "Bearer sync-secret",
                "kroger": {"client_secret": "abc", "client_id": "gruby"},
                "tokens": [{"access_token": "t-1"}],
            }
        )
        self.assertEqual(scrubbed["Authorization"], REDACTED)
        self.assertEqual(scrubbed["kroger"], {"client_secret": REDACTED, "client_id": "gruby"})
        self.assertEqual(scrubbed["tokens"], [{"access_token": REDACTED}])

    def test_before_send_scrubs_request_headers_and_extra(self):
        event = {
            "request": {"headers": {"authorization": "Bearer s", "user-agent": "cron"}},
            "extra": {"cron_secret": "c", "recipes": 3},
        }
        sent = _before_send(event, {})
        self.assertEqual(sent["request"]["headers"], {"authorization": REDACTED, "user-agent": "cron"})
        self.assertEqual(sent["extra"], {"cron_secret": REDACTED, "recipes": 3})

    def test_before_send_passes_events_without_request(self):
        event = {"message": "boom"}
        self.assertEqual(_before_send(event, {}), {"message": "boom"})


if __name__ == "__main__":
    unittest.main()
