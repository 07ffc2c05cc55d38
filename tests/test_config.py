# =============================================================================
# test_config.py - Configuration Tests
# =============================================================================
# Test coverage includes:
#   - Number parsing shared by the environment and the -D option
#   - Defaults and environment overrides
# =============================================================================

import logging

import pytest

from possum_asm.config import AssemblerConfig, parse_number


class TestParseNumber:
    """Test number parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("42", 42),
        ("$FF", 0xFF),
        ("0x1F", 0x1F),
        ("%101", 5),
        ("0b11", 3),
        ("0o17", 15),
        ("-5", -5),
        ("-$10", -16),
        ("  7 ", 7),
    ])
    def test_valid(self, text, expected):
        assert parse_number(text) == expected

    @pytest.mark.parametrize("text", ["", "$", "abc", "0xZZ", "1.5"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_number(text)


class TestAssemblerConfig:
    """Test configuration sources."""

    def test_defaults(self):
        config = AssemblerConfig()
        assert config.max_address == 0xFFFF
        assert config.max_errors == 100

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("POSSUM_ASM_MAX_ADDRESS", "$7FFF")
        monkeypatch.setenv("POSSUM_ASM_MAX_ERRORS", "5")
        config = AssemblerConfig.from_env()
        assert config.max_address == 0x7FFF
        assert config.max_errors == 5

    def test_from_env_unset(self, monkeypatch):
        monkeypatch.delenv("POSSUM_ASM_MAX_ADDRESS", raising=False)
        monkeypatch.delenv("POSSUM_ASM_MAX_ERRORS", raising=False)
        assert AssemblerConfig.from_env() == AssemblerConfig()

    def test_invalid_env_keeps_default(self, monkeypatch, caplog):
        monkeypatch.setenv("POSSUM_ASM_MAX_ERRORS", "many")
        monkeypatch.delenv("POSSUM_ASM_MAX_ADDRESS", raising=False)
        with caplog.at_level(logging.WARNING, logger="possum_asm.config"):
            config = AssemblerConfig.from_env()
        assert config.max_errors == 100
        assert "POSSUM_ASM_MAX_ERRORS" in caplog.text
