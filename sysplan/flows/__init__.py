"""Business flow layer.

This package contains the plan lifecycle and scheduler flows with dependency
injection.

Note: Importing any module from this package automatically triggers dependency
      registration via the import below. CLI/tests don't need to worry about
      DI initialization timing.
"""

import sysplan.core.container  # noqa: F401 - Trigger dependency registration
