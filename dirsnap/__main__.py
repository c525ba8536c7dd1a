import sys

from dirsnap.cli import main

sys.exit(main())
