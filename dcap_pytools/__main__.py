# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT

import sys

from .cli import main

sys.exit(main())
