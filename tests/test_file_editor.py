"""
Tests for the idempotent directive editor.
"""

from datetime import datetime

from hostprov.core.files.editor import IdempotentFileEditor, directive_pattern

FIXED = datetime(2025, 10, 31, 12, 0, 0)


def _editor(**kwargs) -> IdempotentFileEditor:
    return IdempotentFileEditor(clock=lambda: FIXED, **kwargs)


class TestDirectivePattern:
    def test_matches_commented_and_active(self):
        p = directive_pattern("PermitRootLogin")
        assert p.match("PermitRootLogin yes")
        assert p.match("#PermitRootLogin prohibit-password")
        assert p.match("  # PermitRootLogin no")
        assert p.match("fastestmirror=True") is None

    def test_requires_whole_name(self):
        p = directive_pattern("PasswordAuthentication")
        assert p.match("PasswordAuthenticationMethods x") is None
        assert directive_pattern("deltarpm").match("deltarpm=True")


class TestUpsert:
    def test_rewrites_commented_line(self, tmp_path):
        f = tmp_path / "sshd_config"
        f.write_text("Port 22\n#PermitRootLogin prohibit-password\nUsePAM yes\n")
        assert _editor().upsert(f, "PermitRootLogin", "no")
        assert f.read_text() == "Port 22\nPermitRootLogin no\nUsePAM yes\n"

    def test_only_first_match_rewritten(self, tmp_path):
        f = tmp_path / "sshd_config"
        f.write_text("PermitRootLogin yes\nMatch User x\n  PermitRootLogin yes\n")
        _editor().upsert(f, "PermitRootLogin", "no")
        assert f.read_text() == "PermitRootLogin no\nMatch User x\n  PermitRootLogin yes\n"

    def test_appends_when_absent(self, tmp_path):
        f = tmp_path / "dnf.conf"
        f.write_text("[main]\ngpgcheck=1")
        assert _editor().upsert(f, "fastestmirror", "True", separator="=")
        assert f.read_text() == "[main]\ngpgcheck=1\nfastestmirror=True\n"

    def test_creates_missing_file(self, tmp_path):
        f = tmp_path / "exports"
        editor = _editor()
        assert editor.upsert(f, "/export", "*(rw,sync)")
        assert f.read_text() == "/export *(rw,sync)\n"
        assert editor.backups == {}

    def test_second_upsert_is_noop(self, tmp_path):
        f = tmp_path / "sshd_config"
        f.write_text("#PasswordAuthentication yes\n")
        editor = _editor()
        assert editor.upsert(f, "PasswordAuthentication", "no")
        first = f.read_bytes()
        mtime = f.stat().st_mtime_ns

        assert not editor.upsert(f, "PasswordAuthentication", "no")
        assert not _editor().upsert(f, "PasswordAuthentication", "no")
        assert f.read_bytes() == first
        assert f.stat().st_mtime_ns == mtime


class TestBackups:
    def test_backup_before_first_change(self, tmp_path):
        f = tmp_path / "sshd_config"
        f.write_text("PermitRootLogin yes\n")
        editor = _editor()
        editor.upsert(f, "PermitRootLogin", "no")
        editor.upsert(f, "PasswordAuthentication", "no")

        backup = tmp_path / "sshd_config.bak.20251031120000"
        assert editor.backups == {f: backup}
        assert backup.read_text() == "PermitRootLogin yes\n"
        assert len(list(tmp_path.glob("sshd_config.bak.*"))) == 1

    def test_same_second_backups_do_not_collide(self, tmp_path):
        f = tmp_path / "sshd_config"
        f.write_text("PasswordAuthentication no\n")
        _editor().upsert(f, "PasswordAuthentication", "yes")
        _editor().upsert(f, "PasswordAuthentication", "no")

        first = tmp_path / "sshd_config.bak.20251031120000"
        second = tmp_path / "sshd_config.bak.20251031120000.1"
        assert first.read_text() == "PasswordAuthentication no\n"
        assert second.read_text() == "PasswordAuthentication yes\n"

    def test_no_backup_without_change(self, tmp_path):
        f = tmp_path / "sshd_config"
        f.write_text("PermitRootLogin no\n")
        editor = _editor()
        editor.upsert(f, "PermitRootLogin", "no")
        assert not list(tmp_path.glob("*.bak.*"))

    def test_backup_disabled(self, tmp_path):
        f = tmp_path / "conf"
        f.write_text("A 1\n")
        _editor(backup=False).upsert(f, "A", "2")
        assert not list(tmp_path.glob("*.bak.*"))


class TestReadDirective:
    def test_reads_active_value(self, tmp_path):
        f = tmp_path / "conf"
        f.write_text("#PermitRootLogin yes\nPermitRootLogin no\nSELINUX=enforcing\n")
        editor = _editor()
        assert editor.read_directive(f, "PermitRootLogin") == "no"
        assert editor.read_directive(f, "SELINUX") == "enforcing"
        assert editor.read_directive(f, "Missing") is None
        assert editor.read_directive(tmp_path / "nope", "A") is None
