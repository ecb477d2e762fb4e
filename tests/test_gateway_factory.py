import pytest

from xchat.kernel.errors import ConfigError
from xchat.kernel.settings import RelaySettings
from xchat.ports.gateway import build_gateways, load_channel_factory

URLS = {
    "backends": {
        "a": {"url": "ws://a:1"},
        "b": {"url": "ws://b:2", "token": "tb"},
        "c": {"url": "ws://c:3"},
    }
}


def test_gateways_are_built_from_the_configured_channel_factory() -> None:
    s = RelaySettings.from_dict({"channel": "fakes:channel_factory", "max_chars_per_prompt": 100, **URLS})
    gws = build_gateways(s)
    assert sorted(gws) == ["a", "b", "c"]
    assert gws["a"].name == "deepseek"
    assert gws["b"].channel.url == "ws://b:2"
    assert gws["b"].channel.token == "tb"
    assert gws["c"].channel.token is None
    assert gws["a"].max_chars == 100


def test_per_backend_channel_overrides_default() -> None:
    d = {"channel": "no.such.module:factory", "backends": {r: dict(v) for r, v in URLS["backends"].items()}}
    for v in d["backends"].values():
        v["channel"] = "fakes:channel_factory"
    gws = build_gateways(RelaySettings.from_dict(d))
    assert gws["c"].name == "openclaw"


@pytest.mark.parametrize("spec", ["", "fakes", ":factory", "no.such.module:factory", "fakes:missing", "fakes:BACKEND_NAMES"])
def test_bad_channel_spec_is_config_error(spec: str) -> None:
    with pytest.raises(ConfigError):
        load_channel_factory(spec)


def test_missing_channel_is_config_error() -> None:
    with pytest.raises(ConfigError):
        build_gateways(RelaySettings.from_dict(URLS))
