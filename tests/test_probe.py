import pytest

import switchbot_probe


@pytest.mark.parametrize(
    "arg, expected",
    [("255,0,64", (255, 0, 64)), ("#ff0040", (255, 0, 64)), ("FF0040", (255, 0, 64)), ("300, 1, 2", (255, 1, 2))],
)
def test_parse_color_arg(arg, expected):
    assert switchbot_probe._parse_color_arg(arg) == expected


@pytest.mark.parametrize("arg", ["1,2", "abc", "#12345"])
def test_parse_color_arg_rejects_garbage(arg):
    with pytest.raises(ValueError):
        switchbot_probe._parse_color_arg(arg)


async def test_missing_credentials_exit_code(monkeypatch, capsys):
    monkeypatch.delenv("SWITCHBOT_TOKEN", raising=False)
    monkeypatch.delenv("SWITCHBOT_SECRET", raising=False)

    assert await switchbot_probe.main_async(["--token", "", "--list"]) == 2
    assert "required" in capsys.readouterr().err
