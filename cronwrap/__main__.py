import sys

from cronwrap.cli import main

sys.exit(main())
