"""Tests for environment configuration and the standards registry."""

import os

import pytest

from einvoice import STANDARDS, ZUGFeRDStandard, get_config, get_standard


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    # Private copy so values loaded from .env files do not outlive the test
    monkeypatch.setattr(os, "environ", os.environ.copy())
    monkeypatch.chdir(tmp_path)
    for name in ("EINVOICE_STANDARD", "EINVOICE_PDF_LANG", "EINVOICE_CHECK_XSD"):
        monkeypatch.delenv(name, raising=False)


class TestGetConfig:
    def test_defaults(self) -> None:
        config = get_config()
        assert config.standard == "zugferd"
        assert config.pdf_lang == "de"
        assert config.check_xsd is False

    def test_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("EINVOICE_PDF_LANG", "fr")
        monkeypatch.setenv("EINVOICE_CHECK_XSD", "yes")
        config = get_config()
        assert config.pdf_lang == "fr"
        assert config.check_xsd is True

    @pytest.mark.parametrize(("raw", "expected"), [("1", True), ("TRUE", True), ("off", False), ("0", False), ("", False)])
    def test_check_xsd_flag(self, monkeypatch, raw, expected) -> None:
        monkeypatch.setenv("EINVOICE_CHECK_XSD", raw)
        assert get_config().check_xsd is expected

    def test_blank_values_fall_back(self, monkeypatch) -> None:
        monkeypatch.setenv("EINVOICE_STANDARD", "  ")
        monkeypatch.setenv("EINVOICE_PDF_LANG", "")
        config = get_config()
        assert config.standard == "zugferd"
        assert config.pdf_lang == "de"

    def test_reads_dotenv_file(self, tmp_path) -> None:
        (tmp_path / ".env").write_text("EINVOICE_PDF_LANG=fr\nEINVOICE_CHECK_XSD=on\n")
        config = get_config()
        assert config.pdf_lang == "fr"
        assert config.check_xsd is True

    def test_environment_wins_over_dotenv(self, tmp_path, monkeypatch) -> None:
        (tmp_path / ".env").write_text("EINVOICE_PDF_LANG=fr\n")
        monkeypatch.setenv("EINVOICE_PDF_LANG", "it")
        assert get_config().pdf_lang == "it"

    def test_dotenv_is_read_when_config_is_built(self, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr("einvoice.config.load_dotenv", lambda path: calls.append(path))
        get_config()
        assert len(calls) == 1

    def test_frozen(self) -> None:
        config = get_config()
        with pytest.raises(AttributeError):
            config.check_xsd = True


class TestGetStandard:
    def test_default(self) -> None:
        assert isinstance(get_standard(), ZUGFeRDStandard)

    def test_by_name(self) -> None:
        assert isinstance(get_standard("zugferd"), ZUGFeRDStandard)
        assert "zugferd" in STANDARDS

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown e-invoice standard 'xrechnung'"):
            get_standard("xrechnung")

    def test_configured_unknown_default(self, monkeypatch) -> None:
        monkeypatch.setenv("EINVOICE_STANDARD", "peppol")
        with pytest.raises(ValueError, match="Available: zugferd"):
            get_standard()
