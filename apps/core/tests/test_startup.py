"""
Tests that the project boots in a fresh interpreter.

Inside the test session every module is already imported, so import cycles
between models, exceptions and authentication only show up in a new process.
"""
import os
import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def _run(*args):
    env = {**os.environ, 'DJANGO_SETTINGS_MODULE': 'config.settings'}
    return subprocess.run(
        [sys.executable, *args],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=120,
    )


class TestStartup:

    def test_django_setup_succeeds(self):
        result = _run('-c', 'import django; django.setup()')

        assert result.returncode == 0, result.stderr

    def test_authentication_imports_after_models(self):
        result = _run(
            '-c',
            'import django; django.setup(); '
            'import apps.accounts.models, apps.projects.models, apps.core.authentication',
        )

        assert result.returncode == 0, result.stderr

    def test_system_checks_pass(self):
        result = _run('manage.py', 'check')

        assert result.returncode == 0, result.stderr
