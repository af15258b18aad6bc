import json

import pytest

from conftest import png_bytes

from brandtheme import cli
from brandtheme.cli import Target, main, parse_target, read_input


def _image(tmp_path, name="logo.png"):
    path = tmp_path / name
    path.write_bytes(png_bytes([(255, 0, 0), (0, 0, 255)]))
    return path


def test_parse_target_prefixes():
    assert parse_target("image:./a.png") == Target("image", "./a.png")
    assert parse_target("image-url: https://x.test/a.png") == Target("image-url", "https://x.test/a.png")
    assert parse_target("website:example.com") == Target("website", "example.com")
    assert parse_target("example.com") == Target("website", "example.com")


def test_read_input_skips_blanks_and_comments(tmp_path):
    path = tmp_path / "targets.txt"
    path.write_text("\ufeffexample.com\n\n# note\n  image:a.png  \n", encoding="utf-8")
    assert read_input(path) == ["example.com", "image:a.png"]
    with pytest.raises(FileNotFoundError):
        read_input(tmp_path / "missing.txt")


def test_image_command_writes_theme(tmp_path, capsys):
    image = _image(tmp_path)
    out = tmp_path / "out"
    assert main(["--out", str(out), "--css", "image", str(image)]) == 0
    payload = json.loads((out / "logo.theme.json").read_text(encoding="utf-8"))
    assert payload["meta"]["source"] == "image"
    assert set(payload["meta"]["extractedPalette"]) == {"#FF0000", "#0000FF"}
    assert (out / "logo.theme.css").read_text(encoding="utf-8").startswith(":root {")
    printed = capsys.readouterr().out
    assert "[theme] logo:" in printed
    assert "[saved] logo:" in printed


def test_image_command_prints_payload_without_out(tmp_path, capsys):
    assert main(["image", str(_image(tmp_path))]) == 0
    printed = capsys.readouterr().out
    assert '"version": 1' in printed


def test_batch_mode_reports_failures(tmp_path, capsys):
    good = _image(tmp_path, "good.png")
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")
    listing = tmp_path / "targets.txt"
    listing.write_text(f"image:{good}\nimage:{bad}\nimage:{tmp_path / 'gone.png'}\n", encoding="utf-8")
    out = tmp_path / "out"
    assert main(["--input", str(listing), "--out", str(out)]) == 1
    printed = capsys.readouterr().out
    assert "[input] 3 targets" in printed
    assert "[warn] bad:" in printed
    assert "[warn] gone:" in printed
    assert (out / "good.theme.json").exists()


def test_blocked_website_is_reported(capsys):
    assert main(["website", "http://127.0.0.1/"]) == 1
    assert "SSRF_BLOCKED" in capsys.readouterr().out


def test_usage_errors_exit_with_two(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
    assert main(["--input", str(tmp_path / "missing.txt")]) == 2


def test_timeout_flags_override_settings():
    args = cli.parse_args(["--navigation-timeout", "3", "--dns-timeout", "1.5", "website", "example.com"])
    settings = cli.build_settings(args)
    assert settings.navigation_timeout == 3.0
    assert settings.dns_timeout == 1.5
    assert settings.fetch_timeout == 10.0
