"""Tests for docsync.repo_scanner."""

from __future__ import annotations

import json
from hashlib import sha256
from pathlib import Path

from docsync import repo_scanner
from docsync.repo_scanner import RepoScanner, manifest_fingerprint


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_builds_manifest_with_roles_and_language(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / "src" / "app.py", "print('hi')\n")
    _write(repo_root / "src" / "Button.tsx", "export const Button = () => null;\n")
    _write(repo_root / "src" / "Button.test.tsx", "it('renders', () => {});\n")
    _write(repo_root / "tests" / "test_app.py", "def test_ok():\n    assert True\n")
    _write(repo_root / "prisma" / "schema.prisma", "model User {\n  id Int @id\n}\n")
    _write(repo_root / ".env.example", "API_URL=http://localhost\n")
    _write(repo_root / "node_modules" / "left-pad" / "index.js", "module.exports = 1;\n")

    manifest = RepoScanner().scan(str(repo_root))

    assert manifest.root == str(repo_root.resolve())
    paths = {file.path: file for file in manifest.files}

    assert paths["src/app.py"].language == "Python"
    assert paths["src/app.py"].role == "src"
    assert paths["src/Button.tsx"].language == "TypeScript"
    assert paths["src/Button.test.tsx"].role == "test"
    assert paths["tests/test_app.py"].role == "test"
    assert paths["prisma/schema.prisma"].language == "Prisma"
    assert paths[".env.example"].role == "config"
    assert "node_modules/left-pad/index.js" not in paths

    expected_hash = sha256((repo_root / "src" / "app.py").read_bytes()).hexdigest()
    assert paths["src/app.py"].hash == expected_hash


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    try:
        RepoScanner().scan(str(missing))
    except FileNotFoundError as exc:
        assert str(missing) in str(exc)
    else:  # pragma: no cover - defensive guard
        raise AssertionError("Expected FileNotFoundError when scanning missing directory")


def test_scan_respects_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / ".gitignore", "out/\n*.log\n")
    _write(repo_root / "src" / "main.py", "print('ok')\n")
    _write(repo_root / "out" / "artifact.txt", "binary data\n")
    _write(repo_root / "notes.log", "ignore me\n")

    paths = {file.path for file in RepoScanner().scan(str(repo_root)).files}

    assert "src/main.py" in paths
    assert "out/artifact.txt" not in paths
    assert "notes.log" not in paths


def test_scan_skips_generated_documents_and_configured_excludes(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(
        repo_root / ".docsync.yml",
        "docs_dir: kb\nexclude_paths:\n  - data/\n  - '*.generated'\n",
    )
    _write(repo_root / "src" / "main.py", "print('ok')\n")
    _write(repo_root / "kb" / "screens.md", "# Screens\n")
    _write(repo_root / "data" / "ignored.txt", "secret\n")
    _write(repo_root / "report.generated", "generated output\n")

    paths = {file.path for file in RepoScanner().scan(str(repo_root)).files}

    assert "src/main.py" in paths
    assert "kb/screens.md" not in paths
    assert "data/ignored.txt" not in paths
    assert "report.generated" not in paths


def test_scan_skips_default_docs_dir(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / "docs" / "knowledge" / "todo.md", "# TODO\n")
    _write(repo_root / "docs" / "guide.md", "# Guide\n")

    paths = {file.path for file in RepoScanner().scan(str(repo_root)).files}

    assert "docs/knowledge/todo.md" not in paths
    assert "docs/guide.md" in paths


def test_scan_writes_manifest_cache(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write(repo_root / "src" / "main.py", "print('ok')\n")

    RepoScanner().scan(str(repo_root))

    cache_path = repo_root / ".docsync" / "manifest_cache.json"
    payload = json.loads(cache_path.read_text(encoding="utf-8"))
    assert payload.get("version") == 1
    assert "src/main.py" in payload.get("files", {})


def test_scan_reuses_cache_for_unchanged_files(tmp_path: Path, monkeypatch) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write(repo_root / "src" / "main.py", "print('ok')\n")

    RepoScanner().scan(str(repo_root))

    def _fail_hash(path: Path) -> str:
        raise AssertionError("Hash should have been reused from cache")

    monkeypatch.setattr(repo_scanner, "_hash_file", _fail_hash)

    RepoScanner().scan(str(repo_root))


def test_manifest_fingerprint_tracks_content(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write(repo_root / "src" / "main.py", "print('ok')\n")

    scanner = RepoScanner()
    first = manifest_fingerprint(scanner.scan(str(repo_root)))
    again = manifest_fingerprint(scanner.scan(str(repo_root)))
    _write(repo_root / "src" / "main.py", "print('changed')\n")
    changed = manifest_fingerprint(scanner.scan(str(repo_root)))

    assert first == again
    assert first != changed


def test_detect_role_and_language() -> None:
    assert repo_scanner.detect_role("src/__tests__/Button.tsx") == "test"
    assert repo_scanner.detect_role("app/conftest.py") == "test"
    assert repo_scanner.detect_role("server/orders_test.py") == "test"
    assert repo_scanner.detect_role("docs/guide.md") == "docs"
    assert repo_scanner.detect_role("CHANGELOG.md") == "docs"
    assert repo_scanner.detect_role("src/config/env.ts") == "config"
    assert repo_scanner.detect_role("src/app.ts") == "src"
    assert repo_scanner.detect_language("db/init.SQL") == "SQL"
    assert repo_scanner.detect_language("Makefile") is None


def test_gitignore_negation_reincludes_files(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write(repo_root / ".gitignore", "# generated\n*.json\n!package.json\n")
    _write(repo_root / "package.json", "{}\n")
    _write(repo_root / "tsconfig.json", "{}\n")

    paths = {file.path for file in RepoScanner().scan(str(repo_root)).files}

    assert "package.json" in paths
    assert "tsconfig.json" not in paths
    assert ".gitignore" in paths
