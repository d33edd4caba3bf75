import logging

from bookmarks_worker.logging.logger import Log


class TestLogRendering:
    def test_message_without_context_is_unchanged(self) -> None:
        assert Log._render("Leased 3 job(s)", {}) == "Leased 3 job(s)"

    def test_context_is_appended_as_pairs(self) -> None:
        rendered = Log._render("Running archive job", {"job_id": 7, "attempt": 2})

        assert rendered == "Running archive job [job_id=7 attempt=2]"


class TestLogConfigure:
    def test_sets_level_and_quiets_http_client_loggers(self) -> None:
        Log.configure("debug")

        assert logging.getLogger("bookmarks_worker").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_handler_is_attached_once(self) -> None:
        Log.configure("info")
        Log.configure("info")

        assert len(logging.getLogger("bookmarks_worker").handlers) == 1
