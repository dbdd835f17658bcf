#!/usr/bin/env python3
"""
Test runner script for ndview.

Usage:
    python run_tests.py                 # whole suite
    python run_tests.py layout ops      # tests/test_layout.py, tests/test_ops.py
    python run_tests.py --debug -x      # show ndview DEBUG logs, stop at first failure
"""

import os
import sys

repo_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, repo_root)


def build_args(argv):
    modules, extra = [], []
    for arg in argv:
        if arg == '--debug':
            extra += ['--log-cli-level=DEBUG', '-p', 'no:cacheprovider']
        elif not arg.startswith('-') and os.path.exists(os.path.join(repo_root, 'tests', f'test_{arg}.py')):
            modules.append(os.path.join('tests', f'test_{arg}.py'))
        else:
            extra.append(arg)
    return (modules or ['tests']) + ['-v', '--tb=short'] + extra


if __name__ == '__main__':
    import pytest

    os.chdir(repo_root)
    sys.exit(pytest.main(build_args(sys.argv[1:])))
