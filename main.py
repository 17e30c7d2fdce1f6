#!/usr/bin/env python3
"""
Main entry point for the HTTP prober.
"""

import sys

from reqprobe.app import main


if __name__ == '__main__':
    sys.exit(main())
