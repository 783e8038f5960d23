import sys

from chameleon_proxy.cli import main

sys.exit(main())
