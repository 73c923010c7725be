import sys

from pod_restarter.controller import main

sys.exit(main())
