import os
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]


@pytest.mark.parametrize('module', [
    'scheduling.exceptions',
    'scheduling.authentication',
    'scheduling.services.tokens',
    'clinic.urls',
])
def test_module_imports_first_in_fresh_interpreter(module):
    # DRF settings import the authentication class, which imports the error module
    code = (
        'import django; django.setup(); '
        f'import importlib; importlib.import_module({module!r}); '
        'import rest_framework.views'
    )
    env = {**os.environ, 'DJANGO_SETTINGS_MODULE': 'clinic.settings'}
    result = subprocess.run(
        [sys.executable, '-c', code], cwd=ROOT, env=env, capture_output=True, text=True, timeout=60,
    )
    assert result.returncode == 0, result.stderr
