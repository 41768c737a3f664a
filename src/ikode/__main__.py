import sys

from ikode.cli.repl import main

sys.exit(main())
