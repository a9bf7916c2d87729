# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import sys

from kbuildlib.errors import KconfigError

from .core import main

if __name__ == "__main__":
    try:
        main()
    except KconfigError as e:
        print("error: %s" % e, file=sys.stderr)
        sys.exit(1)
