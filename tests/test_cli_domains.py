from typer.testing import CliRunner

from kg_expander.cli import app


runner = CliRunner()


def test_domains_lists_builtin_catalogs():
    r = runner.invoke(app, ["domains"])
    assert r.exit_code == 0, r.output
    assert "Domains:" in r.output
    assert "- perfume:" in r.output
    assert "- wine:" in r.output


def test_domains_with_catalog_file(tmp_path):
    p = tmp_path / "extra.yaml"
    p.write_text(
        "tea:\n  title: Tea Graph\n  root: {id: tea_root, label: お茶}\n  allowed_kinds: [garden]\n",
        encoding="utf-8",
    )
    r = runner.invoke(app, ["domains", "--catalog-file", str(p)])
    assert r.exit_code == 0, r.output
    assert "- tea: Tea Graph (root=tea_root)" in r.output


def test_domains_invalid_catalog_file(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("tea: 3\n", encoding="utf-8")
    r = runner.invoke(app, ["domains", "--catalog-file", str(p)])
    assert r.exit_code == 2
    assert "E_CATALOG_FILE_INVALID" in r.output


def test_domains_missing_catalog_file(tmp_path):
    r = runner.invoke(app, ["domains", "--catalog-file", str(tmp_path / "nope.yaml")])
    assert r.exit_code == 1
    assert "E_CATALOG_FILE_NOT_FOUND" in r.output
