import pytest

from genba.settings import GenbaSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("AI_MOCK", "GENBA_AI_MOCK", "GENBA_FUNCTIONS_URL"):
        monkeypatch.delenv(name, raising=False)


def test_mock_is_on_unless_explicitly_disabled(monkeypatch) -> None:
    assert GenbaSettings(functions_url="https://fn.example").mock_enabled is True

    for value in ("0", "false", " 0 "):
        monkeypatch.setenv("AI_MOCK", value)
        assert GenbaSettings(functions_url="https://fn.example").mock_enabled is False, value

    monkeypatch.setenv("AI_MOCK", "1")
    assert GenbaSettings(functions_url="https://fn.example").mock_enabled is True


def test_prefixed_flag_and_missing_url(monkeypatch) -> None:
    monkeypatch.setenv("GENBA_AI_MOCK", "false")
    assert GenbaSettings(functions_url="https://fn.example").mock_enabled is False
    assert GenbaSettings(functions_url="").mock_enabled is True
