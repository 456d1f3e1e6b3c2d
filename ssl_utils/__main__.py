# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Allow running as `python -m ssl_utils`."""

import sys

from .cli import main

sys.exit(main())
