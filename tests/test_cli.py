import pytest

from hostbasics import __version__, cli
from hostbasics.models import PublicAccess


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["-v"])
    assert exc.value.code == 0
    assert capsys.readouterr().out.strip() == __version__


def test_help_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["-h"])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "-l {en,zh}" in out
    assert "-log" in out


def test_bad_language_is_a_usage_error(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["-l", "fr"])
    assert exc.value.code == 2


def test_language_is_case_insensitive():
    args = cli.build_parser().parse_args(["-l", "EN", "-e"])
    assert args.language == "en"
    assert args.enable_logging is True
    assert cli.build_parser().parse_args(["-log"]).enable_logging is True


def test_report_layout(monkeypatch, capsys):
    monkeypatch.setenv("HOSTBASICS_NO_HIT", "1")
    monkeypatch.setattr(cli.platform, "system", lambda: "Linux")
    monkeypatch.setattr(cli, "build_report", lambda settings: f" CPU Model           : x [{settings.language}]\n")
    assert cli.main(["-l", "en"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "Repo: https://github.com/oneclickvirt/basics",
        "-" * 50,
        " CPU Model           : x [en]",
        "-" * 50,
    ]


def test_build_report_skips_network_when_offline(monkeypatch, settings):
    calls = []
    monkeypatch.setattr(cli, "select_provider", lambda: "provider")
    monkeypatch.setattr(cli, "check_public_access", lambda timeout: PublicAccess())
    monkeypatch.setattr(cli, "network_check", lambda *a: calls.append(a) or "")
    monkeypatch.setattr(cli, "check_system_info", lambda lang, s, p, access: " A : 1\n\n B : 2\n")
    assert cli.build_report(settings) == " A : 1\n B : 2\n"
    assert calls == []


def test_build_report_uses_stack_type(monkeypatch, settings):
    calls = []
    monkeypatch.setattr(cli, "select_provider", lambda: "provider")
    monkeypatch.setattr(cli, "check_public_access",
                        lambda timeout: PublicAccess(connected=True, stack_type="IPv6"))

    def fake_network_check(check_type, language, s, provider):
        calls.append((check_type, language, provider))
        return " IPV6 ASN            : AS64500\n"

    monkeypatch.setattr(cli, "network_check", fake_network_check)
    monkeypatch.setattr(cli, "check_system_info", lambda lang, s, p, access: " A : 1\n")
    assert cli.build_report(settings) == " A : 1\n IPV6 ASN            : AS64500\n"
    assert calls == [("ipv6", "en", "provider")]
