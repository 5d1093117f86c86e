import sys

from pihole_listsync.cli import main

sys.exit(main())
