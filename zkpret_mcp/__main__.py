import sys

from zkpret_mcp.cli import main

sys.exit(main())
