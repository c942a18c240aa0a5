# -*- Python -*-

import os
import platform
import shutil
import sys

import lit.formats

# Configuration file for the 'lit' test runner.

# name: The name of this test suite.
config.name = 'soltrace'

# testFormat: The test format to use to interpret tests.
config.test_format = lit.formats.ShTest(True)

# suffixes: A list of file extensions to treat as test files.
config.suffixes = ['.test']

# test_source_root: The root path where tests are located.
config.test_source_root = os.path.dirname(__file__)

# test_exec_root: The root path where tests should be run.
config.test_exec_root = os.path.join(config.test_source_root, 'Output')

# Find soltrace
if hasattr(config, 'soltrace') and config.soltrace:
    soltrace_path = config.soltrace
else:
    soltrace_path = shutil.which('soltrace')

if soltrace_path:
    config.substitutions.append(('%soltrace', soltrace_path))
else:
    config.substitutions.append(('%soltrace', f'{sys.executable} -m soltrace.cli.main'))

# Test directories
config.substitutions.append(('%{inputs}', os.path.join(config.test_source_root, 'Inputs')))

# Platform-specific features
if platform.system() == 'Darwin':
    config.available_features.add('darwin')
elif platform.system() == 'Linux':
    config.available_features.add('linux')

# Add 'not' command
not_path = shutil.which('not')
if not not_path:
    for path in ['/usr/local/opt/llvm/bin', '/opt/homebrew/opt/llvm/bin', '/usr/bin']:
        candidate = os.path.join(path, 'not')
        if os.path.exists(candidate):
            not_path = candidate
            break
if not_path:
    config.substitutions.append(('not', not_path))

# Find and add FileCheck
filecheck_path = None
for path in ['/usr/local/opt/llvm/bin', '/opt/homebrew/opt/llvm/bin', '/usr/bin']:
    candidate = os.path.join(path, 'FileCheck')
    if os.path.exists(candidate):
        filecheck_path = candidate
        break

if not filecheck_path:
    filecheck_path = shutil.which('FileCheck')
config.substitutions.append(('FileCheck', filecheck_path or 'FileCheck'))

# Keep the user's signature cache and the network out of the tests
config.environment['HOME'] = config.test_exec_root
config.environment['NO_COLOR'] = '1'
config.environment['PYTHONPATH'] = os.pathsep.join(sys.path)
