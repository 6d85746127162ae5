import sys

from qrmatrix.cli import main

sys.exit(main())
