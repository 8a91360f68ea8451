import sys

from dvmux.cli import main

sys.exit(main())
