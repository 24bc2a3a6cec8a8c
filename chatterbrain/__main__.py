import sys

from chatterbrain.cli import main

sys.exit(main())
