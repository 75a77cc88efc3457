import sys

from .tcping import main

sys.exit(main())
