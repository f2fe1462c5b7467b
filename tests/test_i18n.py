"""Tests for the message catalog."""

from autopr.i18n import MESSAGES, get_language, set_language, t
from autopr.models import Language


class TestTranslate:
    """Test message lookup."""

    def test_english_default(self):
        assert get_language() == Language.EN
        assert t("merge.merged", number=5) == "Merged PR #5."

    def test_switch_language(self):
        set_language("ko")
        assert t("common.error") == "오류"
        assert t("common.error", language="en") == "Error"

    def test_falls_back_to_english_then_key(self):
        set_language("ko")
        MESSAGES["en"]["test.only_english"] = "Only English"
        try:
            assert t("test.only_english") == "Only English"
        finally:
            del MESSAGES["en"]["test.only_english"]

        assert t("no.such.key") == "no.such.key"

    def test_missing_format_argument_returns_template(self):
        assert t("merge.merged") == "Merged PR #{number}."
        assert t("merge.merged", other=1) == "Merged PR #{number}."

    def test_catalogs_have_same_keys(self):
        assert set(MESSAGES["en"]) == set(MESSAGES["ko"])
