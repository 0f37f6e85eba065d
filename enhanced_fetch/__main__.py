import sys

from enhanced_fetch.cli import main

sys.exit(main())
