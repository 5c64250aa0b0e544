import sys

from arcade.agent.cli import main

sys.exit(main())
