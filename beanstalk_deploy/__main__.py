"""Allow ``python -m beanstalk_deploy``."""

import sys

from beanstalk_deploy.cli import main

if __name__ == "__main__":
    sys.exit(main())
