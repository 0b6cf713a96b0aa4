import sys

from lingua_coach.client.cli import main

sys.exit(main())
