"""Allow `python -m smbdeploy`"""
import sys

from smbdeploy.cli import main

sys.exit(main())
