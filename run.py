# run.py
# Description: Entry point for running tavern_exporter from a source checkout without installing it.
#
# Imports
from pathlib import Path
import sys
#
# 3rd-party Libraries
#
# Local Imports
# --- Add project root to sys.path ---
project_dir = Path(__file__).parent.resolve()
sys.path.insert(0, str(project_dir))

from tavern_exporter.cli import main
#
#######################################################################################################################
#
# Functions:

if __name__ == "__main__":
    main()

#
# End of run.py
#######################################################################################################################
