import sys

from procpipe.main import main

sys.exit(main())
