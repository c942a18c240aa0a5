import os
import shutil

# Get the test directory and project directory dynamically
script_dir = os.path.dirname(os.path.abspath(__file__))
project_dir = os.path.dirname(script_dir)

config.soltrace_dir = project_dir

# Find soltrace dynamically
if shutil.which('soltrace'):
    config.soltrace = shutil.which('soltrace')
elif os.path.exists(os.path.join(project_dir, 'MyEnv', 'bin', 'soltrace')):
    config.soltrace = os.path.join(project_dir, 'MyEnv', 'bin', 'soltrace')
else:
    config.soltrace = None

# Load the main config
lit_config.load_config(config, os.path.join(script_dir, "lit.cfg.py"))
