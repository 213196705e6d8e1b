import sys

from dvakeeper.daemon import main

sys.exit(main())
